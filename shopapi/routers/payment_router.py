"""
결제 API 라우터

- POST /payments/pay-with-points: 포인트로 주문 전액 결제
- POST /payments/webhook: 결제 게이트웨이 이벤트 수신 (인증 없음, 서명 검증)
- POST /payments/integrity-signature: 결제 위젯용 무결성 서명 발급
"""

import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException

from shopapi.containers import Container
from shopapi.core.auth_middleware import get_current_active_user
from shopapi.core.exceptions import BaseAPIException
from shopapi.schemas.order import PayWithPointsRequest, PayWithPointsResponse
from shopapi.schemas.payment import (
    IntegritySignatureRequest,
    IntegritySignatureResponse,
    WebhookEvent,
    WebhookProcessResult,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.checkout_service import CheckoutService, parse_order_id
from shopapi.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/pay-with-points", response_model=PayWithPointsResponse)
@inject
async def pay_with_points(
    request: PayWithPointsRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    checkout_service: CheckoutService = Depends(Provide[Container.services.checkout_service]),
) -> PayWithPointsResponse:
    """
    포인트 전액 결제

    Request Body:
        orderId: 주문 ID (문자열 또는 숫자)

    HTTP Status:
        200: 결제 완료 (키 할당과 메일은 비동기 처리)
        400: 잔액 부족, pending이 아닌 주문, 잘못된 주문 ID
        404: 주문이 없거나 다른 사용자의 주문
    """
    try:
        order_id = parse_order_id(request.order_id)
        return checkout_service.pay_with_points(current_user.id, order_id)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Pay with points failed for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process points payment")


@router.post("/webhook", response_model=WebhookProcessResult)
@inject
async def payment_webhook(
    event: WebhookEvent,
    payment_service: PaymentService = Depends(Provide[Container.services.payment_service]),
) -> WebhookProcessResult:
    """결제 게이트웨이 이벤트 - 서명이 맞지 않으면 401"""
    try:
        return payment_service.process_webhook_event(event)
    except BaseAPIException:
        raise
    except Exception as e:
        logger.error(f"Webhook processing failed for event {event.event}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process webhook")


@router.post("/integrity-signature", response_model=IntegritySignatureResponse)
@inject
async def integrity_signature(
    request: IntegritySignatureRequest,
    _: UserSchema = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(Provide[Container.services.payment_service]),
) -> IntegritySignatureResponse:
    return payment_service.generate_integrity_signature(
        request.reference, request.amount_in_cents, request.currency
    )
