from pydantic import BaseModel, Field
from typing import Optional


class OffsetPagination(BaseModel):
    """offset 기반 페이지네이션 메타 정보"""

    limit: int
    offset: int
    total: Optional[int] = Field(None, description="전체 항목 수 (계산한 경우)")
    has_more: bool = False


# 엔드포인트별 페이지네이션 제한
class PaginationLimits:
    POINTS_TRANSACTIONS = {"min": 1, "max": 100, "default": 50}
    ADMIN_POINTS_USERS = {"min": 1, "max": 100, "default": 50}
    ADMIN_TRANSACTIONS = {"min": 1, "max": 100, "default": 50}
    RETURNS_LIST = {"min": 1, "max": 100, "default": 20}
