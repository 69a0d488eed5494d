from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from shopapi.repositories.points_repository import PointsRepository
from shopapi.repositories.order_points_repository import OrderPointsRepository
from shopapi.repositories.order_repository import OrderRepository
from shopapi.repositories.user_repository import UserRepository
from shopapi.core.exceptions import (
    BusinessLogicError,
    InsufficientBalanceError,
    InternalServerError,
    NotFoundError,
)
from shopapi.models.order import OrderStatus
from shopapi.models.points import PointsTransactionType
from shopapi.schemas.admin_points import (
    AdminPointsAdjustmentRequest,
    AdminPointsAdjustmentResponse,
    AdminPointsUsersResponse,
    AdminProfileSummary,
    AdminTransactionsResponse,
    AdminUserPointsDetail,
    PointsStatsResponse,
)
from shopapi.schemas.pagination import OffsetPagination
from shopapi.schemas.points import (
    CalculateEarnResponse,
    ConvertResponse,
    LedgerFailureReason,
    OrderPointsResponse,
    OrderPointsSchema,
    PointsBalance,
    PointsBalanceResponse,
    PointsConstants,
    PointsTransactionEntry,
    PointsTransactionItem,
    PointsTransactionResult,
    PointsTransactionsResponse,
    PreUsePointsResponse,
    ValidatePointsResponse,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.utils.points_math import (
    calculate_earned_points,
    pesos_to_points,
    points_constants,
    points_to_pesos,
)
import logging

logger = logging.getLogger(__name__)

_CREDIT_KINDS = (
    PointsTransactionType.EARNED,
    PointsTransactionType.REFUND,
    PointsTransactionType.ADJUSTMENT,
)


class PointService:
    """포인트 원장 및 포인트 관련 조회를 담당하는 서비스

    earn/deduct는 예외를 던지지 않고 PointsTransactionResult를 반환한다.
    호출부가 success를 확인하고 자신의 흐름에 맞게 분기해야 한다
    (결제는 중단, 환불은 로그 후 계속).
    """

    def __init__(self, db: Session):
        self.db = db
        self.points_repo = PointsRepository(db)
        self.order_points_repo = OrderPointsRepository(db)
        self.order_repo = OrderRepository(db)
        self.user_repo = UserRepository(db)

    # ------------------------------------------------------------------
    # 원장
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> PointsBalance:
        """사용자 포인트 잔액 조회 (없으면 0으로 생성)"""
        try:
            return self.points_repo.get_or_create_balance(user_id)
        except (SQLAlchemyError, LookupError) as e:
            self.db.rollback()
            logger.error(f"Failed to get balance for user {user_id}: {str(e)}")
            raise InternalServerError("Failed to retrieve points balance")

    def earn(
        self,
        user_id: str,
        amount: int,
        kind: PointsTransactionType = PointsTransactionType.EARNED,
        description: str = "",
        order_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PointsTransactionResult:
        """포인트 적립/환불/조정

        Args:
            user_id: 사용자 ID
            amount: 적립할 포인트 (adjustment만 음수 허용)
            kind: earned | refund | adjustment
            description: 거래 설명
            order_id: 관련 주문 ID
            metadata: 부가 정보

        Returns:
            PointsTransactionResult: 성공 여부와 거래 후 잔액

        음수 조정은 차감과 같은 조건부 UPDATE를 거치며 total_spent에 누적된다.
        """
        if kind not in _CREDIT_KINDS:
            return self._invalid(f"Unsupported credit kind: {kind}")
        if amount == 0 or (amount < 0 and kind != PointsTransactionType.ADJUSTMENT):
            return self._invalid(f"Invalid amount for {kind.value}: {amount}")

        try:
            if amount < 0:
                result = self.points_repo.debit(
                    user_id, -amount, kind, description, order_id, metadata
                )
            else:
                result = self.points_repo.credit(
                    user_id, amount, kind, description, order_id, metadata
                )
        except (SQLAlchemyError, LookupError) as e:
            return self._storage_failure("earn", user_id, amount, e)

        if result.success:
            logger.info(
                f"Points {kind.value} for user {user_id}: {amount:+d} -> balance {result.balance_after}"
            )
        else:
            logger.info(f"Points {kind.value} rejected for user {user_id}: {result.message}")
        return result

    def deduct(
        self,
        user_id: str,
        amount: int,
        description: str = "",
        order_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PointsTransactionResult:
        """포인트 차감 - 잔액이 부족하면 상태 변경 없이 success=False"""
        if amount <= 0:
            return self._invalid(f"Deduction amount must be positive: {amount}")

        try:
            result = self.points_repo.debit(
                user_id,
                amount,
                PointsTransactionType.SPENT,
                description,
                order_id,
                metadata,
            )
        except (SQLAlchemyError, LookupError) as e:
            return self._storage_failure("deduct", user_id, amount, e)

        if result.success:
            logger.info(
                f"Deducted {amount} points from user {user_id} -> balance {result.balance_after}"
            )
        else:
            logger.info(f"Deduction rejected for user {user_id}: {result.message}")
        return result

    def _invalid(self, message: str) -> PointsTransactionResult:
        return PointsTransactionResult(
            success=False, reason=LedgerFailureReason.INVALID_AMOUNT, message=message
        )

    def _storage_failure(
        self, operation: str, user_id: str, amount: int, error: Exception
    ) -> PointsTransactionResult:
        self.db.rollback()
        logger.error(f"Points {operation} failed for user {user_id} (amount={amount}): {str(error)}")
        return PointsTransactionResult(
            success=False,
            reason=LedgerFailureReason.STORAGE_ERROR,
            message=f"Failed to {operation} points",
        )

    def list_transactions(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[PointsTransactionEntry]:
        """사용자 거래 내역 (최신순)"""
        try:
            return self.points_repo.get_user_transactions(user_id, limit, offset)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list transactions for user {user_id}: {str(e)}")
            raise InternalServerError("Failed to retrieve transactions")

    # ------------------------------------------------------------------
    # 사용자 API
    # ------------------------------------------------------------------

    def get_balance_summary(self, user_id: str) -> PointsBalanceResponse:
        balance = self.get_balance(user_id)
        return PointsBalanceResponse(
            balance=balance.balance,
            total_earned=balance.total_earned,
            total_spent=balance.total_spent,
            value_in_pesos=points_to_pesos(balance.balance),
            constants=PointsConstants(**points_constants()),
        )

    def get_transactions_page(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> PointsTransactionsResponse:
        """한 건 더 조회해서 다음 페이지 존재 여부 판단"""
        rows = self.list_transactions(user_id, limit + 1, offset)
        has_more = len(rows) > limit
        items = [
            PointsTransactionItem(
                **row.model_dump(), value_in_pesos=points_to_pesos(abs(row.amount))
            )
            for row in rows[:limit]
        ]
        return PointsTransactionsResponse(
            transactions=items,
            pagination=OffsetPagination(limit=limit, offset=offset, has_more=has_more),
        )

    def validate_points_usage(self, user_id: str, points_to_use: int) -> ValidatePointsResponse:
        balance = self.get_balance(user_id).balance
        valid = points_to_use <= balance
        return ValidatePointsResponse(
            valid=valid,
            current_balance=balance,
            requested_points=points_to_use,
            discount_amount=points_to_pesos(points_to_use),
            remaining_balance=balance - points_to_use if valid else balance,
        )

    @staticmethod
    def calculate_earn(purchase_amount: int) -> CalculateEarnResponse:
        points = calculate_earned_points(purchase_amount)
        return CalculateEarnResponse(
            purchase_amount=purchase_amount,
            points_to_earn=points,
            value_in_pesos=points_to_pesos(points),
        )

    @staticmethod
    def convert(points: Optional[int] = None, pesos: Optional[int] = None) -> ConvertResponse:
        """points 또는 pesos 중 정확히 하나만 받아 환산"""
        if (points is None) == (pesos is None):
            raise BusinessLogicError(
                "INVALID_CONVERSION",
                "Provide exactly one of 'points' or 'pesos'",
            )
        if points is not None:
            return ConvertResponse(points=points, pesos=points_to_pesos(points))
        return ConvertResponse(points=pesos_to_points(pesos), pesos=pesos)

    def get_order_points(self, user_id: str, order_id: int) -> OrderPointsResponse:
        order = self.order_repo.get_user_order(user_id, order_id)
        if order is None:
            raise NotFoundError("Order not found or does not belong to user")

        record = self.order_points_repo.get_by_order_id(order_id)
        if record is None:
            raise NotFoundError("No points information for this order")

        return OrderPointsResponse(
            order_id=record.order_id,
            points_used=record.points_used,
            points_earned=record.points_earned,
            discount_amount=record.discount_amount,
        )

    def get_order_points_record(self, order_id: int) -> Optional[OrderPointsSchema]:
        """정산 레코드 조회 - None이면 포인트를 쓰지 않은 주문"""
        return self.order_points_repo.get_by_order_id(order_id)

    def declare_pre_use(
        self, user_id: str, order_id: int, points_to_use: int
    ) -> PreUsePointsResponse:
        """결제 전 포인트 사용 의사 기록 (order_id 기준 upsert, 0이면 취소)

        실제 차감은 결제 게이트웨이가 결제를 승인할 때 이루어진다.
        """
        order = self.order_repo.get_user_order(user_id, order_id)
        if order is None:
            raise NotFoundError("Order not found or does not belong to user")
        if order.status != OrderStatus.PENDING:
            raise BusinessLogicError(
                "ORDER_NOT_PENDING",
                f"Order is not pending (status: {order.status.value})",
            )

        balance = self.get_balance(user_id).balance
        if points_to_use > balance:
            raise InsufficientBalanceError(required_points=points_to_use, available=balance)

        total = order.items_total
        discount = points_to_pesos(points_to_use)
        if discount > total:
            raise BusinessLogicError(
                "POINTS_EXCEED_ORDER_TOTAL",
                "Points discount cannot exceed the order total",
                {"order_total": total, "discount_amount": discount},
            )

        try:
            self.order_points_repo.upsert(
                order_id=order_id,
                user_id=user_id,
                points_used=points_to_use,
                points_earned=0,
                discount_amount=discount,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record pre-use points for order {order_id}: {str(e)}")
            raise InternalServerError("Failed to record points usage")

        logger.info(f"User {user_id} declared {points_to_use} points for order {order_id}")
        return PreUsePointsResponse(
            order_id=order_id,
            points_used=points_to_use,
            discount_amount=discount,
            amount_to_pay=total - discount,
        )

    # ------------------------------------------------------------------
    # 관리자 API
    # ------------------------------------------------------------------

    def list_point_balances(
        self, limit: int = 50, offset: int = 0, sort_by: str = "balance", order: str = "desc"
    ) -> AdminPointsUsersResponse:
        users, total = self.points_repo.list_balances(limit, offset, sort_by, order)
        return AdminPointsUsersResponse(
            users=users,
            pagination=OffsetPagination(
                limit=limit, offset=offset, total=total, has_more=offset + limit < total
            ),
        )

    def get_user_points_detail(self, user_id: str) -> AdminUserPointsDetail:
        profile = self.user_repo.get_by_id(user_id)
        if profile is None:
            raise NotFoundError("User not found")

        return AdminUserPointsDetail(
            profile=AdminProfileSummary(
                id=profile.id,
                email=profile.email,
                full_name=profile.full_name,
                created_at=profile.created_at,
            ),
            points=self.get_balance(user_id),
            recent_transactions=self.list_transactions(user_id, limit=10),
            stats=self.order_points_repo.summarize_for_user(user_id),
        )

    def admin_adjust_points(
        self, admin: UserSchema, request: AdminPointsAdjustmentRequest
    ) -> AdminPointsAdjustmentResponse:
        """관리자 포인트 조정 (양수: 추가, 음수: 차감)"""
        if self.user_repo.get_by_id(request.user_id) is None:
            raise NotFoundError("User not found")

        actor = admin.email or admin.id
        result = self.earn(
            request.user_id,
            request.amount,
            kind=PointsTransactionType.ADJUSTMENT,
            description=f"{request.reason} (Admin: {actor})",
            metadata={"admin_id": admin.id, "reason": request.reason},
        )
        if not result.success:
            if result.is_insufficient:
                raise InsufficientBalanceError(
                    required_points=abs(request.amount),
                    available=result.balance_after or 0,
                    message="Adjustment would make the balance negative",
                )
            raise InternalServerError("Failed to adjust points")

        logger.info(
            f"Admin {admin.id} adjusted points for user {request.user_id}: {request.amount:+d}"
        )
        transaction = (
            self.points_repo.get_transaction(result.transaction_id)
            if result.transaction_id
            else None
        )
        return AdminPointsAdjustmentResponse(
            success=True,
            new_balance=result.balance_after or 0,
            transaction=transaction,
        )

    def search_transactions(
        self,
        tx_type: Optional[PointsTransactionType] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> AdminTransactionsResponse:
        items, total = self.points_repo.search_transactions(
            tx_type=tx_type.value if tx_type else None,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
        return AdminTransactionsResponse(
            transactions=items,
            pagination=OffsetPagination(
                limit=limit, offset=offset, total=total, has_more=offset + limit < total
            ),
        )

    def get_points_stats(self) -> PointsStatsResponse:
        totals = self.points_repo.get_totals()
        top_users, _ = self.points_repo.list_balances(limit=10, sort_by="balance", order="desc")
        return PointsStatsResponse(
            **totals,
            value_in_pesos=points_to_pesos(totals["total_points_in_circulation"]),
            constants=PointsConstants(**points_constants()),
            transactions_by_type=self.points_repo.count_transactions_by_type(),
            top_users=top_users,
        )
