"""
포인트 API 라우터 (사용자용)

- GET /points/balance: 내 잔액과 환산 상수
- GET /points/transactions: 내 거래 내역 (최신순, 페이징)
- POST /points/validate: 사용하려는 포인트가 잔액 이내인지 확인
- GET /points/calculate-earn: 구매 금액에 대한 적립 예정 포인트
- GET /points/convert: 포인트 <-> 금액 환산
- GET /points/order/{order_id}: 주문의 포인트 사용/적립 내역
- POST /points/order/{order_id}/use: 결제 전 포인트 사용 선언

인증: 모든 엔드포인트는 Bearer 토큰 필요 (calculate-earn, convert 제외)
"""

import logging
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from shopapi.containers import Container
from shopapi.core.auth_middleware import get_current_active_user
from shopapi.core.exceptions import BaseAPIException
from shopapi.schemas.points import (
    CalculateEarnResponse,
    ConvertResponse,
    OrderPointsResponse,
    PointsBalanceResponse,
    PointsTransactionsResponse,
    PreUsePointsRequest,
    PreUsePointsResponse,
    ValidatePointsRequest,
    ValidatePointsResponse,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/balance", response_model=PointsBalanceResponse)
@inject
async def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsBalanceResponse:
    """
    내 포인트 잔액 조회

    잔액이 없으면 0으로 초기화된 잔액을 생성해서 반환합니다.
    """
    try:
        return point_service.get_balance_summary(current_user.id)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get balance for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve balance")


@router.get("/transactions", response_model=PointsTransactionsResponse)
@inject
async def get_my_transactions(
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsTransactionsResponse:
    """
    내 포인트 거래 내역 조회

    Query Parameters:
        limit: 한 페이지에 조회할 항목 수 (1-100, 기본: 50)
        offset: 건너뛸 항목 수 (기본: 0)

    사용 예시:
        GET /points/transactions?limit=20&offset=0
    """
    try:
        return point_service.get_transactions_page(current_user.id, limit=limit, offset=offset)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get transactions for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve transactions")


@router.post("/validate", response_model=ValidatePointsResponse)
@inject
async def validate_points(
    request: ValidatePointsRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> ValidatePointsResponse:
    """사용하려는 포인트가 현재 잔액 이내인지 확인 (잔액은 변경하지 않음)"""
    try:
        return point_service.validate_points_usage(current_user.id, request.points_to_use)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to validate points for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to validate points")


@router.get("/calculate-earn", response_model=CalculateEarnResponse)
async def calculate_earn(
    amount: int = Query(..., ge=0, description="구매 금액 (페소)"),
) -> CalculateEarnResponse:
    return PointService.calculate_earn(amount)


@router.get("/convert", response_model=ConvertResponse)
async def convert(
    points: Optional[int] = Query(None, ge=0, description="포인트 -> 금액"),
    pesos: Optional[int] = Query(None, ge=0, description="금액 -> 포인트"),
) -> ConvertResponse:
    return PointService.convert(points=points, pesos=pesos)


@router.get("/order/{order_id}", response_model=OrderPointsResponse)
@inject
async def get_order_points(
    order_id: int = Path(..., gt=0, description="주문 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> OrderPointsResponse:
    try:
        return point_service.get_order_points(current_user.id, order_id)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get order points for order {order_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve order points")


@router.post("/order/{order_id}/use", response_model=PreUsePointsResponse)
@inject
async def use_points_on_order(
    request: PreUsePointsRequest,
    order_id: int = Path(..., gt=0, description="주문 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PreUsePointsResponse:
    """
    결제 전 포인트 사용 선언

    주문당 하나의 레코드를 유지하며 다시 호출하면 덮어씁니다 (0이면 취소).
    실제 차감은 결제 승인 웹훅에서 이루어집니다.
    """
    try:
        return point_service.declare_pre_use(current_user.id, order_id, request.points_to_use)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to apply points to order {order_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to apply points to order")
