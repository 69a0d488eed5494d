"""
포인트 관리자 API 라우터

- GET /admin/points/users: 사용자별 잔액 목록 (정렬, 페이징)
- GET /admin/points/user/{user_id}: 사용자 상세 (프로필, 잔액, 최근 거래, 주문 통계)
- POST /admin/points/adjust: 포인트 수동 조정 (양수: 추가, 음수: 차감)
- GET /admin/points/transactions: 전체 거래 검색
- GET /admin/points/stats: 전체 통계

권한: profiles.role == admin
"""

import logging
from datetime import datetime
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from shopapi.containers import Container
from shopapi.core.auth_middleware import require_admin
from shopapi.core.exceptions import BaseAPIException
from shopapi.models.points import PointsTransactionType
from shopapi.schemas.admin_points import (
    AdminPointsAdjustmentRequest,
    AdminPointsAdjustmentResponse,
    AdminPointsSortField,
    AdminPointsUsersResponse,
    AdminTransactionsResponse,
    AdminUserPointsDetail,
    PointsStatsResponse,
    SortOrder,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/points", tags=["admin-points"])


@router.get("/users", response_model=AdminPointsUsersResponse)
@inject
async def list_users_points(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: AdminPointsSortField = Query("balance", description="정렬 기준"),
    order: SortOrder = Query("desc"),
    _: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> AdminPointsUsersResponse:
    try:
        return point_service.list_point_balances(
            limit=limit, offset=offset, sort_by=sort_by, order=order
        )
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to list point balances: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list users points")


@router.get("/user/{user_id}", response_model=AdminUserPointsDetail)
@inject
async def get_user_points(
    user_id: str = Path(..., min_length=1),
    _: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> AdminUserPointsDetail:
    try:
        return point_service.get_user_points_detail(user_id)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get points detail for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve user points")


@router.post("/adjust", response_model=AdminPointsAdjustmentResponse)
@inject
async def adjust_points(
    request: AdminPointsAdjustmentRequest,
    current_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> AdminPointsAdjustmentResponse:
    """
    포인트 수동 조정

    음수 조정은 잔액 조건부 차감으로 처리되어 잔액이 음수가 되지 않습니다.
    거래 설명에는 사유와 처리한 관리자가 기록됩니다.
    """
    try:
        return point_service.admin_adjust_points(current_user, request)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to adjust points for user {request.user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to adjust points")


@router.get("/transactions", response_model=AdminTransactionsResponse)
@inject
async def search_transactions(
    type: Optional[PointsTransactionType] = Query(None, description="거래 유형"),
    user_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> AdminTransactionsResponse:
    try:
        return point_service.search_transactions(
            tx_type=type,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to search point transactions: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to search transactions")


@router.get("/stats", response_model=PointsStatsResponse)
@inject
async def get_points_stats(
    _: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsStatsResponse:
    try:
        return point_service.get_points_stats()
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get points stats: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve points stats")
