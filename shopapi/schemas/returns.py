from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime

from shopapi.models.returns import RefundMethod, ReturnStatus
from shopapi.schemas.pagination import OffsetPagination


class ReturnItemSchema(BaseModel):
    id: int
    order_item_id: int
    product_id: int
    quantity: int
    price: int

    class Config:
        from_attributes = True


class ReturnSchema(BaseModel):
    id: int
    order_id: int
    user_id: str
    status: ReturnStatus
    reason: str
    refund_amount: int
    refund_method: Optional[RefundMethod] = None
    admin_notes: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    items: List[ReturnItemSchema] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateReturnRequest(BaseModel):
    order_id: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=1000)
    order_item_ids: List[int] = Field(..., min_length=1, description="반품할 주문 항목 ID")


class ProcessReturnRequest(BaseModel):
    """관리자 반품 처리 요청"""

    status: Literal["approved", "rejected"]
    refund_method: Optional[RefundMethod] = None
    admin_notes: Optional[str] = Field(None, max_length=2000)


class ReturnProcessResult(BaseModel):
    return_request: ReturnSchema
    money_refund: int = Field(0, description="환불 수단으로 돌려줄 금액")
    points_refunded: int = Field(0, description="원장에 재적립된 포인트")
    points_refund_failed: bool = Field(False, description="포인트 재적립 실패 여부 (수동 정산 필요)")


class ReturnListResponse(BaseModel):
    returns: List[ReturnSchema]
    pagination: OffsetPagination
