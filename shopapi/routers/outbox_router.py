import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Query

from shopapi.containers import Container
from shopapi.core.auth_middleware import require_admin
from shopapi.schemas.outbox import OutboxProcessResult
from shopapi.schemas.user import User as UserSchema
from shopapi.services.outbox_service import OutboxService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/outbox", tags=["admin-outbox"])


@router.post("/process", response_model=OutboxProcessResult)
@inject
async def process_outbox(
    limit: int = Query(50, ge=1, le=500, description="한 번에 처리할 작업 수"),
    _: UserSchema = Depends(require_admin),
    outbox_service: OutboxService = Depends(Provide[Container.services.outbox_service]),
) -> OutboxProcessResult:
    """처리 시점이 된 outbox 작업 실행 (스케줄러/운영자 수동 실행용)"""
    try:
        return outbox_service.process_pending(limit)
    except Exception as e:
        logger.error(f"Outbox processing failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process outbox")
