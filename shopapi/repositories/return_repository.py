from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, update
from sqlalchemy.orm import Session

from shopapi.models.returns import (
    Return as ReturnModel,
    ReturnItem as ReturnItemModel,
    ReturnStatus,
)
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.returns import ReturnSchema


class ReturnRepository(BaseRepository[ReturnModel, ReturnSchema]):
    def __init__(self, db: Session):
        super().__init__(ReturnModel, ReturnSchema, db)

    def create_with_items(
        self,
        order_id: int,
        user_id: str,
        reason: str,
        refund_amount: int,
        items: List[Dict[str, Any]],
    ) -> ReturnSchema:
        instance = ReturnModel(
            order_id=order_id,
            user_id=user_id,
            reason=reason,
            refund_amount=refund_amount,
            status=ReturnStatus.PENDING.value,
        )
        instance.items = [ReturnItemModel(**item) for item in items]
        self.db.add(instance)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self._to_schema(instance)

    def has_pending_for_order(self, order_id: int) -> bool:
        return (
            self.db.query(ReturnModel.id)
            .filter(
                ReturnModel.order_id == order_id,
                ReturnModel.status == ReturnStatus.PENDING.value,
            )
            .first()
            is not None
        )

    def list_returns(
        self,
        user_id: Optional[str] = None,
        status: Optional[ReturnStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ReturnSchema], int]:
        query = self.db.query(ReturnModel)
        if user_id:
            query = query.filter(ReturnModel.user_id == user_id)
        if status:
            query = query.filter(ReturnModel.status == status.value)

        total = query.count()
        rows = (
            query.order_by(desc(ReturnModel.created_at), desc(ReturnModel.id))
            .populate_existing()
            .offset(offset)
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows), total

    def finalize_pending(self, return_id: int, to_status: ReturnStatus, **values) -> bool:
        """pending인 반품만 최종 상태로 변경 (원자적). 변경 여부 반환"""
        stmt = (
            update(ReturnModel)
            .where(
                ReturnModel.id == return_id,
                ReturnModel.status == ReturnStatus.PENDING.value,
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        changed = self.db.execute(stmt).rowcount == 1
        self.db.commit()
        return changed

    def update_values(self, return_id: int, **values) -> None:
        """상태와 무관하게 필드 갱신 (선점한 처리자만 호출)"""
        stmt = (
            update(ReturnModel)
            .where(ReturnModel.id == return_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
