"""
반품 API 라우터

사용자:
- POST /returns: 반품 신청
- GET /returns: 내 반품 목록
- GET /returns/{return_id}: 반품 상세
- POST /returns/{return_id}/cancel: 대기 중인 반품 취소

관리자:
- GET /returns/admin/list: 전체 반품 목록 (상태 필터)
- POST /returns/admin/{return_id}/process: 승인(환불) 또는 거절
"""

import logging
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from shopapi.containers import Container
from shopapi.core.auth_middleware import get_current_active_user, require_admin
from shopapi.core.exceptions import BaseAPIException
from shopapi.models.returns import ReturnStatus
from shopapi.schemas.returns import (
    CreateReturnRequest,
    ProcessReturnRequest,
    ReturnListResponse,
    ReturnProcessResult,
    ReturnSchema,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.return_service import ReturnService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/returns", tags=["returns"])


@router.get("/admin/list", response_model=ReturnListResponse)
@inject
async def list_all_returns(
    status: Optional[ReturnStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: UserSchema = Depends(require_admin),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnListResponse:
    try:
        return return_service.list_returns(status=status, limit=limit, offset=offset)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to list returns: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list returns")


@router.post("/admin/{return_id}/process", response_model=ReturnProcessResult)
@inject
async def process_return(
    request: ProcessReturnRequest,
    return_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(require_admin),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnProcessResult:
    """
    반품 처리

    승인 시 포인트를 사용한 주문이면 환불 금액을 현금/포인트로 비례 분할하고,
    포인트분은 원장에 재적립합니다. 재적립 실패는 승인을 막지 않습니다.
    """
    try:
        return return_service.process_return(return_id, request, current_user)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to process return {return_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process return")


@router.post("", response_model=ReturnSchema, status_code=201)
@inject
async def create_return(
    request: CreateReturnRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnSchema:
    try:
        return return_service.create_return(current_user.id, request)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to create return for order {request.order_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create return")


@router.get("", response_model=ReturnListResponse)
@inject
async def list_my_returns(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: UserSchema = Depends(get_current_active_user),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnListResponse:
    try:
        return return_service.list_returns(user_id=current_user.id, limit=limit, offset=offset)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to list returns for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list returns")


@router.get("/{return_id}", response_model=ReturnSchema)
@inject
async def get_return(
    return_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnSchema:
    try:
        return return_service.get_return(return_id, current_user)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to get return {return_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve return")


@router.post("/{return_id}/cancel", response_model=ReturnSchema)
@inject
async def cancel_return(
    return_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    return_service: ReturnService = Depends(Provide[Container.services.return_service]),
) -> ReturnSchema:
    try:
        return return_service.cancel_return(return_id, current_user)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Failed to cancel return {return_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to cancel return")
