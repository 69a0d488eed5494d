from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional
from datetime import datetime

from shopapi.schemas.pagination import OffsetPagination
from shopapi.schemas.points import (
    PointsBalance,
    PointsConstants,
    PointsTransactionEntry,
)

AdminPointsSortField = Literal["balance", "total_earned", "total_spent", "created_at"]
SortOrder = Literal["asc", "desc"]


class AdminPointsUser(BaseModel):
    """포인트 보유 사용자 목록 항목 (프로필 조인)"""

    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    balance: int
    total_earned: int
    total_spent: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminPointsUsersResponse(BaseModel):
    users: List[AdminPointsUser]
    pagination: OffsetPagination


class AdminProfileSummary(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None


class AdminUserPointsStats(BaseModel):
    orders_with_points: int = 0
    total_points_used: int = 0
    total_points_earned: int = 0


class AdminUserPointsDetail(BaseModel):
    profile: AdminProfileSummary
    points: PointsBalance
    recent_transactions: List[PointsTransactionEntry]
    stats: AdminUserPointsStats


class AdminPointsAdjustmentRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: str = Field(..., min_length=1, description="사용자 ID")
    amount: int = Field(..., description="조정할 포인트 (양수: 추가, 음수: 차감)")
    reason: str = Field(..., min_length=1, max_length=255, description="조정 사유")

    @field_validator("amount")
    @classmethod
    def amount_must_not_be_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Amount cannot be zero")
        return v


class AdminPointsAdjustmentResponse(BaseModel):
    success: bool
    new_balance: int
    transaction: Optional[PointsTransactionEntry] = None


class AdminTransactionItem(PointsTransactionEntry):
    user_email: Optional[str] = None


class AdminTransactionsResponse(BaseModel):
    transactions: List[AdminTransactionItem]
    pagination: OffsetPagination


class PointsStatsResponse(BaseModel):
    total_users: int
    total_points_in_circulation: int
    total_points_earned: int
    total_points_spent: int
    value_in_pesos: int
    constants: PointsConstants
    transactions_by_type: Dict[str, int]
    top_users: List[AdminPointsUser]
