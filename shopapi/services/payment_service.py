"""
결제 게이트웨이 연동 - 무결성 서명 생성, 웹훅 서명 검증, 결제 상태 반영

APPROVED 처리 순서:
1. 주문 확정 (pending -> confirmed 조건부 UPDATE). 이미 확정된 주문이면 중복 웹훅으로 보고 성공 반환
2. 사전 사용 선언된 포인트 차감 - 게이트웨이가 이미 할인된 금액을 결제했으므로
   실패 시 사용 포인트를 0으로 기록하고 에러 로그를 남겨 수동 정산 대상으로 둔다
3. 현금 결제분에 대한 포인트 적립, 정산 레코드 upsert
4. 키 할당/메일은 outbox 작업으로 등록
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopapi.config import Settings
from shopapi.core.exceptions import InvalidSignatureError
from shopapi.models.order import OrderStatus
from shopapi.models.points import PointsTransactionType
from shopapi.repositories.order_points_repository import OrderPointsRepository
from shopapi.repositories.order_repository import OrderRepository
from shopapi.schemas.order import OrderSchema
from shopapi.schemas.payment import (
    IntegritySignatureResponse,
    WebhookEvent,
    WebhookProcessResult,
)
from shopapi.services.outbox_service import (
    OutboxService,
    TASK_ORDER_FULFILL,
    TASK_PAYMENT_FAILED,
)
from shopapi.services.point_service import PointService
from shopapi.utils.points_math import calculate_earned_points, points_to_pesos

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "ORDER-"
FAILED_STATUSES = ("DECLINED", "VOIDED", "ERROR")


def _resolve_path(data: Dict[str, Any], dotted: str) -> Any:
    value: Any = data
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def parse_reference(reference: Optional[str]) -> Optional[int]:
    """"ORDER-{id}" 형식의 결제 참조에서 주문 ID 추출"""
    if not reference or not reference.startswith(REFERENCE_PREFIX):
        return None
    try:
        return int(reference[len(REFERENCE_PREFIX):])
    except ValueError:
        return None


class PaymentService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.order_repo = OrderRepository(db)
        self.order_points_repo = OrderPointsRepository(db)
        self.point_service = PointService(db)
        self.outbox_service = OutboxService(db, settings)

    # ------------------------------------------------------------------
    # 서명
    # ------------------------------------------------------------------

    def generate_integrity_signature(
        self, reference: str, amount_in_cents: int, currency: Optional[str] = None
    ) -> IntegritySignatureResponse:
        currency = currency or self.settings.PAYMENT_CURRENCY
        raw = f"{reference}{amount_in_cents}{currency}{self.settings.PAYMENT_INTEGRITY_SECRET}"
        return IntegritySignatureResponse(
            reference=reference,
            amount_in_cents=amount_in_cents,
            currency=currency,
            signature=hashlib.sha256(raw.encode("utf-8")).hexdigest(),
        )

    def compute_event_checksum(self, event: WebhookEvent) -> str:
        properties = event.signature.properties if event.signature else []
        values = "".join(
            "" if (v := _resolve_path(event.data, prop)) is None else str(v)
            for prop in properties
        )
        raw = f"{values}{event.timestamp or ''}{self.settings.PAYMENT_EVENTS_SECRET}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def validate_webhook_signature(self, event: WebhookEvent) -> bool:
        if not self.settings.PAYMENT_EVENTS_SECRET:
            logger.warning("PAYMENT_EVENTS_SECRET not configured, skipping webhook signature check")
            return True
        if not event.signature or not event.signature.checksum:
            return False
        expected = self.compute_event_checksum(event)
        return hmac.compare_digest(expected, event.signature.checksum.lower())

    # ------------------------------------------------------------------
    # 웹훅 처리
    # ------------------------------------------------------------------

    def process_webhook_event(self, event: WebhookEvent) -> WebhookProcessResult:
        if not self.validate_webhook_signature(event):
            raise InvalidSignatureError()

        if event.event != "transaction.updated":
            logger.info(f"Ignoring payment event {event.event}")
            return WebhookProcessResult(success=True, message=f"Event {event.event} ignored")

        transaction = event.transaction
        order_id = parse_reference(transaction.get("reference"))
        if order_id is None:
            logger.warning(f"Payment event with invalid reference: {transaction.get('reference')}")
            return WebhookProcessResult(success=False, message="Invalid order reference")

        order = self.order_repo.get_by_id(order_id)
        if order is None:
            logger.warning(f"Payment event for unknown order {order_id}")
            return WebhookProcessResult(success=False, message="Order not found")

        status = str(transaction.get("status", "")).upper()
        transaction_id = str(transaction.get("id", ""))
        logger.info(f"Payment event for order {order_id}: {status} (transaction {transaction_id})")

        if status == "APPROVED":
            return self._handle_approved(order, transaction_id)
        if status in FAILED_STATUSES:
            return self._handle_failed(order, status, transaction_id)
        if status == "PENDING":
            return WebhookProcessResult(success=True, message="Payment pending")
        return WebhookProcessResult(success=False, message=f"Unknown transaction status: {status}")

    def _handle_approved(self, order: OrderSchema, transaction_id: str) -> WebhookProcessResult:
        pre_use = self.order_points_repo.get_by_order_id(order.id)
        points_used = pre_use.points_used if pre_use else 0

        try:
            confirmed = self.order_repo.confirm_pending_order(
                order.id, payment_id=transaction_id, points_used=points_used
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to confirm order {order.id}: {str(e)}")
            raise

        if not confirmed:
            # 웹훅 재전송 또는 포인트 결제로 이미 확정된 주문
            logger.info(f"Order {order.id} already processed (status {order.status.value})")
            return WebhookProcessResult(success=True, message="Order already processed")

        order_total = order.items_total
        # 게이트웨이는 선언된 할인만큼 적게 결제했으므로 적립 기준은 선언값
        paid_amount = max(0, order_total - points_to_pesos(points_used))
        if points_used > 0:
            deduction = self.point_service.deduct(
                order.user_id,
                points_used,
                description=f"Points used on order #{order.id}",
                order_id=order.id,
                metadata={"method": "gateway", "transaction_id": transaction_id},
            )
            if not deduction.success:
                # 차감되지 않은 포인트는 반품 시 환불되면 안 됨
                logger.error(
                    f"Order {order.id} confirmed but {points_used} pre-declared points could not be "
                    f"deducted from user {order.user_id}: {deduction.message}. "
                    f"Recording 0 points used; needs reconciliation "
                    f"(uncollected discount {points_to_pesos(points_used)})"
                )
                points_used = 0
                try:
                    self.order_repo.set_points_used(order.id, 0)
                except SQLAlchemyError as e:
                    self.db.rollback()
                    logger.error(f"Failed to reset points_used for order {order.id}: {str(e)}")

        discount_amount = points_to_pesos(points_used)
        points_earned = calculate_earned_points(paid_amount)
        if points_earned > 0:
            earned = self.point_service.earn(
                order.user_id,
                points_earned,
                kind=PointsTransactionType.EARNED,
                description=f"Points earned on order #{order.id}",
                order_id=order.id,
                metadata={"paid_amount": paid_amount, "transaction_id": transaction_id},
            )
            if not earned.success:
                logger.error(f"Failed to credit {points_earned} earned points for order {order.id}")
                points_earned = 0

        if pre_use is not None or points_earned > 0:
            try:
                self.order_points_repo.upsert(
                    order_id=order.id,
                    user_id=order.user_id,
                    points_used=points_used,
                    points_earned=points_earned,
                    discount_amount=discount_amount,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to record order points for order {order.id}: {str(e)}")

        self.outbox_service.enqueue_best_effort(TASK_ORDER_FULFILL, {"order_id": order.id})
        return WebhookProcessResult(success=True, message="Order confirmed")

    def _handle_failed(
        self, order: OrderSchema, status: str, transaction_id: str
    ) -> WebhookProcessResult:
        cancelled = self.order_repo.transition_status(
            order.id,
            [OrderStatus.PENDING],
            OrderStatus.CANCELLED,
            payment_id=transaction_id or None,
        )
        if not cancelled:
            return WebhookProcessResult(
                success=True, message=f"Order not pending, {status} ignored"
            )

        self.outbox_service.enqueue_best_effort(TASK_PAYMENT_FAILED, {"order_id": order.id})
        return WebhookProcessResult(success=True, message=f"Order cancelled ({status})")
