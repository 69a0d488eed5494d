from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopapi.models.points import OrderPoints as OrderPointsModel
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.admin_points import AdminUserPointsStats
from shopapi.schemas.points import OrderPointsSchema


class OrderPointsRepository(BaseRepository[OrderPointsModel, OrderPointsSchema]):
    """주문별 포인트 정산 레코드 - order_id 기준 한 행"""

    def __init__(self, db: Session):
        super().__init__(OrderPointsModel, OrderPointsSchema, db)

    def get_by_order_id(self, order_id: int) -> Optional[OrderPointsSchema]:
        return self.get_by_field("order_id", order_id)

    def upsert(
        self,
        order_id: int,
        user_id: str,
        points_used: int,
        points_earned: int,
        discount_amount: int,
    ) -> OrderPointsSchema:
        """order_id 기준 insert-or-update

        동시 insert로 유니크 제약 위반이 나면 롤백 후 기존 행을 갱신한다.
        """
        values = {
            "user_id": user_id,
            "points_used": points_used,
            "points_earned": points_earned,
            "discount_amount": discount_amount,
        }

        instance = self._find(order_id)
        if instance is None:
            try:
                instance = OrderPointsModel(order_id=order_id, **values)
                self.db.add(instance)
                self.db.commit()
                return self._to_schema(instance)
            except IntegrityError:
                self.db.rollback()
                instance = self._find(order_id)
                if instance is None:
                    raise

        for key, value in values.items():
            setattr(instance, key, value)
        self.db.commit()
        return self._to_schema(instance)

    def _find(self, order_id: int) -> Optional[OrderPointsModel]:
        return (
            self.db.query(OrderPointsModel)
            .filter(OrderPointsModel.order_id == order_id)
            .populate_existing()
            .first()
        )

    def summarize_for_user(self, user_id: str) -> AdminUserPointsStats:
        orders, used, earned = (
            self.db.query(
                func.count(OrderPointsModel.id),
                func.coalesce(func.sum(OrderPointsModel.points_used), 0),
                func.coalesce(func.sum(OrderPointsModel.points_earned), 0),
            )
            .filter(OrderPointsModel.user_id == user_id)
            .one()
        )
        return AdminUserPointsStats(
            orders_with_points=int(orders),
            total_points_used=int(used),
            total_points_earned=int(earned),
        )
