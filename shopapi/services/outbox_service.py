"""
Outbox - 결제/환불 확정 이후의 부가 작업을 지속성 있게 재시도

결제나 환불이 확정된 뒤의 작업(키 할당, 메일)은 실패해도 주 흐름을 되돌리지 않습니다.
대신 작업을 outbox_tasks에 기록하고 워커가 처리하며, 실패 시 지수 백오프로 재시도합니다.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopapi.config import Settings
from shopapi.repositories.outbox_repository import OutboxRepository
from shopapi.schemas.outbox import OutboxProcessResult, OutboxTaskSchema
from shopapi.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

TASK_ORDER_FULFILL = "order.fulfill"
TASK_PAYMENT_FAILED = "order.payment_failed"
TASK_RETURN_NOTIFY = "return.notify"


class OutboxService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        fulfillment_service: Optional[FulfillmentService] = None,
    ):
        self.db = db
        self.settings = settings
        self.outbox_repo = OutboxRepository(db)
        self._fulfillment_service = fulfillment_service

    @property
    def fulfillment_service(self) -> FulfillmentService:
        if self._fulfillment_service is None:
            self._fulfillment_service = FulfillmentService(self.db, self.settings)
        return self._fulfillment_service

    def enqueue(self, task_type: str, payload: Dict[str, Any]) -> OutboxTaskSchema:
        task = self.outbox_repo.enqueue(task_type, payload)
        logger.info(f"Enqueued outbox task {task.id} ({task_type}): {payload}")
        return task

    def enqueue_best_effort(
        self, task_type: str, payload: Dict[str, Any]
    ) -> Optional[OutboxTaskSchema]:
        """확정 이후 단계용 - 기록에 실패해도 예외를 올리지 않음"""
        try:
            return self.enqueue(task_type, payload)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to enqueue {task_type} {payload}: {str(e)}")
            return None

    def _handlers(self) -> Dict[str, Callable[[Dict[str, Any]], None]]:
        fulfillment = self.fulfillment_service
        return {
            TASK_ORDER_FULFILL: lambda p: fulfillment.fulfill_order(int(p["order_id"])),
            TASK_PAYMENT_FAILED: lambda p: fulfillment.notify_payment_failed(int(p["order_id"])),
            TASK_RETURN_NOTIFY: lambda p: fulfillment.notify_return_processed(
                int(p["return_id"]), int(p.get("points_refunded", 0))
            ),
        }

    def retry_delay(self, attempts: int) -> timedelta:
        """attempts번째 실패 후 대기 시간: base * 2^(attempts-1), 상한 적용"""
        seconds = self.settings.OUTBOX_RETRY_BASE_SECONDS * (2 ** max(attempts - 1, 0))
        return timedelta(seconds=min(seconds, self.settings.OUTBOX_RETRY_MAX_SECONDS))

    def process_pending(self, limit: Optional[int] = None) -> OutboxProcessResult:
        """처리 시점이 된 작업을 가져와 실행"""
        limit = limit or self.settings.OUTBOX_BATCH_SIZE
        tasks = self.outbox_repo.claim_due(limit)
        result = OutboxProcessResult(claimed=len(tasks))
        handlers = self._handlers()

        for task in tasks:
            handler = handlers.get(task.task_type)
            try:
                if handler is None:
                    raise ValueError(f"Unknown outbox task type: {task.task_type}")
                handler(task.payload)
            except Exception as e:
                self.db.rollback()
                if task.attempts >= self.settings.OUTBOX_MAX_ATTEMPTS or handler is None:
                    self.outbox_repo.mark_failed(task.id, str(e), next_retry_at=None)
                    result.dead += 1
                    logger.error(
                        f"Outbox task {task.id} ({task.task_type}) gave up after {task.attempts} attempts: {str(e)}"
                    )
                else:
                    next_retry_at = datetime.now(timezone.utc) + self.retry_delay(task.attempts)
                    self.outbox_repo.mark_failed(task.id, str(e), next_retry_at=next_retry_at)
                    result.retried += 1
                    logger.warning(
                        f"Outbox task {task.id} ({task.task_type}) failed (attempt {task.attempts}), "
                        f"retry at {next_retry_at.isoformat()}: {str(e)}"
                    )
                continue

            self.outbox_repo.mark_done(task.id)
            result.succeeded += 1

        if tasks:
            logger.info(f"Outbox batch processed: {result.model_dump()}")
        return result
