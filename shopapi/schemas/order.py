from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union
from datetime import datetime

from shopapi.models.order import OrderStatus


class OrderItemSchema(BaseModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: int

    class Config:
        from_attributes = True


class OrderSchema(BaseModel):
    id: int
    user_id: str
    status: OrderStatus
    total_amount: int
    payment_id: Optional[str] = None
    points_used: int = 0
    items: List[OrderItemSchema] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def items_total(self) -> int:
        """항목 합계 (항목이 없으면 저장된 total_amount)"""
        if not self.items:
            return self.total_amount
        return sum(item.price * item.quantity for item in self.items)


class ProductKeySchema(BaseModel):
    id: int
    product_id: int
    license_key: str
    status: str
    user_id: Optional[str] = None
    order_item_id: Optional[int] = None
    assigned_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayWithPointsRequest(BaseModel):
    """포인트 전액 결제 요청 - 프론트엔드 계약상 camelCase"""

    model_config = ConfigDict(populate_by_name=True)

    order_id: Union[int, str, None] = Field(None, alias="orderId")


class PayWithPointsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    order_id: str = Field(..., alias="orderId")
    message: Optional[str] = None
