"""
포인트 리포지토리 - 잔액 행과 거래 로그에 대한 데이터베이스 접근

핵심 특징:
- 잔액 변경은 단일 조건부 UPDATE로 처리하여 check-then-act 경합을 제거합니다
  (차감: WHERE balance >= n, 영향받은 행이 없으면 잔액 부족)
- 거래 로그는 잔액 커밋 이후 별도로 기록하며, 실패해도 잔액 변경은 유지됩니다
- 잔액 행은 최초 조회 시 생성되며 동시 생성은 유니크 제약으로 해소합니다
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, desc, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shopapi.models.points import (
    PointsTransaction as PointsTransactionModel,
    PointsTransactionType,
    UserPoints as UserPointsModel,
)
from shopapi.models.user import Profile
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.admin_points import AdminPointsUser, AdminTransactionItem
from shopapi.schemas.points import (
    LedgerFailureReason,
    PointsBalance,
    PointsTransactionEntry,
    PointsTransactionResult,
)

logger = logging.getLogger(__name__)


class PointsRepository(BaseRepository[UserPointsModel, PointsBalance]):
    """
    포인트 리포지토리 - 잔액(user_points)과 거래 로그(points_transactions) 관리

    credit/debit은 예외 대신 PointsTransactionResult를 반환하지만,
    잔액 UPDATE 자체의 DB 오류는 호출한 서비스가 처리하도록 전파합니다.
    """

    def __init__(self, db: Session):
        super().__init__(UserPointsModel, PointsBalance, db)

    def _to_entry(self, tx: PointsTransactionModel) -> PointsTransactionEntry:
        return PointsTransactionEntry(
            id=tx.id,
            user_id=tx.user_id,
            amount=tx.amount,
            type=PointsTransactionType(tx.type),
            description=tx.description or "",
            order_id=tx.order_id,
            created_at=tx.created_at,
            metadata=tx.meta,
        )

    # ------------------------------------------------------------------
    # 잔액
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> Optional[PointsBalance]:
        return self.get_by_field("user_id", user_id)

    def get_or_create_balance(self, user_id: str) -> PointsBalance:
        """잔액 행 조회, 없으면 0으로 생성

        동시에 두 요청이 생성하려 하면 한쪽은 유니크 제약 위반이 나고,
        롤백 후 먼저 만들어진 행을 다시 읽는다.
        """
        existing = self.get_balance(user_id)
        if existing is not None:
            return existing

        try:
            self.db.add(
                UserPointsModel(user_id=user_id, balance=0, total_earned=0, total_spent=0)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()

        created = self.get_balance(user_id)
        if created is None:
            raise LookupError(f"Unable to create points balance for user {user_id}")
        return created

    def credit(
        self,
        user_id: str,
        amount: int,
        tx_type: PointsTransactionType,
        description: str,
        order_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PointsTransactionResult:
        """잔액 += amount, total_earned += amount (amount > 0)"""
        self.get_or_create_balance(user_id)

        stmt = (
            update(UserPointsModel)
            .where(UserPointsModel.user_id == user_id)
            .values(
                balance=UserPointsModel.balance + amount,
                total_earned=UserPointsModel.total_earned + amount,
            )
            .returning(UserPointsModel.balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = self.db.execute(stmt).scalar_one_or_none()
        if balance_after is None:
            self.db.rollback()
            return PointsTransactionResult(
                success=False,
                reason=LedgerFailureReason.STORAGE_ERROR,
                message="Points balance row disappeared during credit",
            )
        self.db.commit()

        transaction_id = self._append_transaction(
            user_id, amount, tx_type, description, order_id, metadata
        )
        return PointsTransactionResult(
            success=True,
            amount=amount,
            balance_after=balance_after,
            transaction_id=transaction_id,
            message="Points credited",
        )

    def debit(
        self,
        user_id: str,
        amount: int,
        tx_type: PointsTransactionType,
        description: str,
        order_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PointsTransactionResult:
        """잔액 -= amount, total_spent += amount (amount > 0, 잔액 부족 시 변경 없음)"""
        current = self.get_or_create_balance(user_id)

        stmt = (
            update(UserPointsModel)
            .where(
                UserPointsModel.user_id == user_id,
                UserPointsModel.balance >= amount,
            )
            .values(
                balance=UserPointsModel.balance - amount,
                total_spent=UserPointsModel.total_spent + amount,
            )
            .returning(UserPointsModel.balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = self.db.execute(stmt).scalar_one_or_none()
        if balance_after is None:
            self.db.rollback()
            return PointsTransactionResult(
                success=False,
                reason=LedgerFailureReason.INSUFFICIENT_BALANCE,
                balance_after=current.balance,
                message=f"Insufficient balance. Required: {amount}, Available: {current.balance}",
            )
        self.db.commit()

        transaction_id = self._append_transaction(
            user_id, -amount, tx_type, description, order_id, metadata
        )
        return PointsTransactionResult(
            success=True,
            amount=-amount,
            balance_after=balance_after,
            transaction_id=transaction_id,
            message="Points debited",
        )

    def _append_transaction(
        self,
        user_id: str,
        amount: int,
        tx_type: PointsTransactionType,
        description: str,
        order_id: Optional[int],
        metadata: Optional[Dict[str, Any]],
    ) -> Optional[int]:
        """거래 로그 기록 - 실패해도 이미 커밋된 잔액은 되돌리지 않는다"""
        tx = PointsTransactionModel(
            user_id=user_id,
            amount=amount,
            type=tx_type.value,
            description=description,
            order_id=order_id,
            meta=metadata or {},
        )
        try:
            self.db.add(tx)
            self.db.commit()
            return tx.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                f"Balance updated but transaction log write failed for user {user_id} "
                f"(amount={amount}, type={tx_type.value}): {str(e)}"
            )
            return None

    # ------------------------------------------------------------------
    # 거래 로그 조회
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: int) -> Optional[PointsTransactionEntry]:
        tx = (
            self.db.query(PointsTransactionModel)
            .filter(PointsTransactionModel.id == transaction_id)
            .first()
        )
        return self._to_entry(tx) if tx else None

    def get_user_transactions(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[PointsTransactionEntry]:
        """사용자 거래 내역 (최신순)"""
        rows = (
            self.db.query(PointsTransactionModel)
            .filter(PointsTransactionModel.user_id == user_id)
            .order_by(
                desc(PointsTransactionModel.created_at), desc(PointsTransactionModel.id)
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_entry(row) for row in rows]

    def search_transactions(
        self,
        tx_type: Optional[str] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[AdminTransactionItem], int]:
        """관리자용 전체 거래 검색 (사용자 이메일 포함)"""
        query = self.db.query(PointsTransactionModel, Profile.email).outerjoin(
            Profile, Profile.id == PointsTransactionModel.user_id
        )
        if tx_type:
            query = query.filter(PointsTransactionModel.type == tx_type)
        if user_id:
            query = query.filter(PointsTransactionModel.user_id == user_id)
        if start_date:
            query = query.filter(PointsTransactionModel.created_at >= start_date)
        if end_date:
            query = query.filter(PointsTransactionModel.created_at <= end_date)

        total = query.count()
        rows = (
            query.order_by(
                desc(PointsTransactionModel.created_at), desc(PointsTransactionModel.id)
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        items = [
            AdminTransactionItem(**self._to_entry(tx).model_dump(), user_email=email)
            for tx, email in rows
        ]
        return items, total

    # ------------------------------------------------------------------
    # 관리자 집계
    # ------------------------------------------------------------------

    def list_balances(
        self,
        limit: int = 50,
        offset: int = 0,
        sort_by: str = "balance",
        order: str = "desc",
    ) -> Tuple[List[AdminPointsUser], int]:
        sort_column = getattr(UserPointsModel, sort_by, UserPointsModel.balance)
        direction = asc if order == "asc" else desc

        query = self.db.query(UserPointsModel, Profile.email, Profile.full_name).outerjoin(
            Profile, Profile.id == UserPointsModel.user_id
        )
        total = query.count()
        rows = (
            query.order_by(direction(sort_column), asc(UserPointsModel.id))
            .populate_existing()
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_admin_user(points, email, name) for points, email, name in rows], total

    def _to_admin_user(
        self, points: UserPointsModel, email: Optional[str], full_name: Optional[str]
    ) -> AdminPointsUser:
        return AdminPointsUser(
            user_id=points.user_id,
            email=email,
            full_name=full_name,
            balance=points.balance,
            total_earned=points.total_earned,
            total_spent=points.total_spent,
            created_at=points.created_at,
            updated_at=points.updated_at,
        )

    def get_totals(self) -> Dict[str, int]:
        total_users, circulation, earned, spent = self.db.query(
            func.count(UserPointsModel.id),
            func.coalesce(func.sum(UserPointsModel.balance), 0),
            func.coalesce(func.sum(UserPointsModel.total_earned), 0),
            func.coalesce(func.sum(UserPointsModel.total_spent), 0),
        ).one()
        return {
            "total_users": int(total_users),
            "total_points_in_circulation": int(circulation),
            "total_points_earned": int(earned),
            "total_points_spent": int(spent),
        }

    def count_transactions_by_type(self) -> Dict[str, int]:
        rows = (
            self.db.query(PointsTransactionModel.type, func.count(PointsTransactionModel.id))
            .group_by(PointsTransactionModel.type)
            .all()
        )
        return {tx_type: int(count) for tx_type, count in rows}
