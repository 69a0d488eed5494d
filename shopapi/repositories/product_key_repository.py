from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from shopapi.models.order import OrderItem
from shopapi.models.product_key import ProductKey as ProductKeyModel, ProductKeyStatus
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.order import ProductKeySchema


class ProductKeyRepository(BaseRepository[ProductKeyModel, ProductKeySchema]):
    def __init__(self, db: Session):
        super().__init__(ProductKeyModel, ProductKeySchema, db)

    def count_assigned_for_item(self, order_item_id: int) -> int:
        return (
            self.db.query(ProductKeyModel)
            .filter(ProductKeyModel.order_item_id == order_item_id)
            .count()
        )

    def assign_keys(
        self, product_id: int, user_id: str, order_item_id: int, count: int
    ) -> List[ProductKeySchema]:
        """사용 가능한 키를 최대 count개 사용자에게 할당 (재고가 부족하면 있는 만큼)"""
        if count <= 0:
            return []

        keys = (
            self.db.query(ProductKeyModel)
            .filter(
                ProductKeyModel.product_id == product_id,
                ProductKeyModel.status == ProductKeyStatus.AVAILABLE.value,
            )
            .order_by(ProductKeyModel.id)
            .limit(count)
            .with_for_update(skip_locked=True)
            .all()
        )

        now = datetime.now(timezone.utc)
        for key in keys:
            key.status = ProductKeyStatus.ASSIGNED.value
            key.user_id = user_id
            key.order_item_id = order_item_id
            key.assigned_at = now
        self.db.commit()
        return self._to_schemas(keys)

    def get_keys_for_order(self, order_id: int) -> List[ProductKeySchema]:
        keys = (
            self.db.query(ProductKeyModel)
            .join(OrderItem, OrderItem.id == ProductKeyModel.order_item_id)
            .filter(OrderItem.order_id == order_id)
            .order_by(ProductKeyModel.id)
            .all()
        )
        return self._to_schemas(keys)
