from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from shopapi.models.points import PointsTransactionType
from shopapi.schemas.pagination import OffsetPagination


class PointsBalance(BaseModel):
    """사용자 포인트 잔액 행"""

    user_id: str = Field(..., description="사용자 ID")
    balance: int = Field(..., description="현재 포인트 잔액")
    total_earned: int = Field(0, description="누적 적립 포인트")
    total_spent: int = Field(0, description="누적 사용 포인트")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PointsConstants(BaseModel):
    points_per_1000_pesos: int
    pesos_per_point: int
    earning_divisor: int


class PointsBalanceResponse(BaseModel):
    """포인트 잔액 응답"""

    balance: int = Field(..., description="현재 포인트 잔액")
    total_earned: int = Field(..., description="누적 적립 포인트")
    total_spent: int = Field(..., description="누적 사용 포인트")
    value_in_pesos: int = Field(..., description="잔액의 금액 환산값")
    constants: PointsConstants


class PointsTransactionEntry(BaseModel):
    """포인트 거래 로그 항목"""

    id: int = Field(..., description="거래 ID")
    user_id: str = Field(..., description="사용자 ID")
    amount: int = Field(..., description="부호 있는 포인트 변동량")
    type: PointsTransactionType = Field(..., description="거래 유형")
    description: str = Field("", description="거래 설명")
    order_id: Optional[int] = Field(None, description="관련 주문 ID")
    created_at: Optional[datetime] = Field(None, description="생성 시간")
    metadata: Optional[Dict[str, Any]] = Field(None, description="부가 정보")


class PointsTransactionItem(PointsTransactionEntry):
    """거래 내역 API 항목 - 금액 환산값 포함"""

    value_in_pesos: int = Field(..., description="|amount|의 금액 환산값")


class PointsTransactionsResponse(BaseModel):
    transactions: List[PointsTransactionItem]
    pagination: OffsetPagination


class LedgerFailureReason(str, Enum):
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    STORAGE_ERROR = "STORAGE_ERROR"


class PointsTransactionResult(BaseModel):
    """원장 적립/차감 결과 - 예외 대신 success 플래그로 실패를 전달"""

    success: bool = Field(..., description="성공 여부")
    reason: Optional[LedgerFailureReason] = Field(None, description="실패 사유")
    amount: int = Field(0, description="적용된 부호 있는 변동량")
    balance_after: Optional[int] = Field(None, description="거래 후 잔액")
    transaction_id: Optional[int] = Field(None, description="거래 로그 ID")
    message: str = Field("", description="응답 메시지")

    @property
    def is_insufficient(self) -> bool:
        return self.reason == LedgerFailureReason.INSUFFICIENT_BALANCE


class ValidatePointsRequest(BaseModel):
    points_to_use: int = Field(..., ge=0, description="사용하려는 포인트")


class ValidatePointsResponse(BaseModel):
    valid: bool
    current_balance: int
    requested_points: int
    discount_amount: int
    remaining_balance: int


class CalculateEarnResponse(BaseModel):
    purchase_amount: int
    points_to_earn: int
    value_in_pesos: int


class ConvertResponse(BaseModel):
    points: int
    pesos: int


class OrderPointsSchema(BaseModel):
    """주문별 포인트 정산 레코드"""

    order_id: int
    user_id: str
    points_used: int = 0
    points_earned: int = 0
    discount_amount: int = 0

    class Config:
        from_attributes = True


class OrderPointsResponse(BaseModel):
    order_id: int
    points_used: int
    points_earned: int
    discount_amount: int


class PreUsePointsRequest(BaseModel):
    points_to_use: int = Field(..., ge=0, description="주문에 적용할 포인트 (0이면 취소)")


class PreUsePointsResponse(BaseModel):
    order_id: int
    points_used: int
    discount_amount: int
    amount_to_pay: int = Field(..., description="포인트 할인 후 결제할 금액")
