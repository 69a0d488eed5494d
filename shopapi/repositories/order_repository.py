from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from shopapi.models.order import Order as OrderModel, OrderStatus
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.order import OrderSchema


class OrderRepository(BaseRepository[OrderModel, OrderSchema]):
    """주문 리포지토리 - 조회와 조건부 상태 전이만 담당"""

    def __init__(self, db: Session):
        super().__init__(OrderModel, OrderSchema, db)

    def get_user_order(self, user_id: str, order_id: int) -> Optional[OrderSchema]:
        """사용자 소유 주문 조회 (다른 사용자 주문이면 None)"""
        instance = (
            self.db.query(OrderModel)
            .filter(OrderModel.id == order_id, OrderModel.user_id == user_id)
            .populate_existing()
            .first()
        )
        return self._to_schema(instance)

    def transition_status(
        self,
        order_id: int,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        **values,
    ) -> bool:
        """현재 상태가 from_statuses 중 하나일 때만 상태 변경 (원자적)

        Returns:
            bool: 실제로 변경되었는지 여부
        """
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status.in_([s.value for s in from_statuses]),
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        changed = self.db.execute(stmt).rowcount == 1
        self.db.commit()
        return changed

    def confirm_pending_order(
        self, order_id: int, payment_id: str, points_used: int = 0
    ) -> bool:
        """pending -> confirmed. 결제 확정 시점 (이후 단계는 되돌리지 않음)"""
        return self.transition_status(
            order_id,
            [OrderStatus.PENDING],
            OrderStatus.CONFIRMED,
            payment_id=payment_id,
            points_used=points_used,
        )

    def set_points_used(self, order_id: int, points_used: int) -> None:
        """실제로 차감된 포인트로 주문 기록 정정"""
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(points_used=points_used)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
