from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from shopapi.models.outbox import OutboxStatus, OutboxTask as OutboxTaskModel
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.outbox import OutboxTaskSchema


class OutboxRepository(BaseRepository[OutboxTaskModel, OutboxTaskSchema]):
    def __init__(self, db: Session):
        super().__init__(OutboxTaskModel, OutboxTaskSchema, db)

    def enqueue(self, task_type: str, payload: Dict[str, Any]) -> OutboxTaskSchema:
        return self.create(
            task_type=task_type,
            payload=payload,
            status=OutboxStatus.PENDING.value,
            attempts=0,
        )

    def claim_due(self, limit: int, now: Optional[datetime] = None) -> List[OutboxTaskSchema]:
        """처리할 작업을 잠그고 processing으로 표시 (다른 워커는 SKIP LOCKED로 건너뜀)"""
        now = now or datetime.now(timezone.utc)
        rows = (
            self.db.query(OutboxTaskModel)
            .filter(
                OutboxTaskModel.status.in_(
                    [OutboxStatus.PENDING.value, OutboxStatus.ERROR.value]
                ),
                or_(
                    OutboxTaskModel.next_retry_at.is_(None),
                    OutboxTaskModel.next_retry_at <= now,
                ),
            )
            .order_by(OutboxTaskModel.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )
        for row in rows:
            row.status = OutboxStatus.PROCESSING.value
            row.attempts = (row.attempts or 0) + 1
        self.db.commit()
        return self._to_schemas(rows)

    def mark_done(self, task_id: int) -> None:
        row = self.db.get(OutboxTaskModel, task_id)
        if row is None:
            return
        row.status = OutboxStatus.DONE.value
        row.last_error = None
        row.processed_at = datetime.now(timezone.utc)
        self.db.commit()

    def mark_failed(
        self, task_id: int, error: str, next_retry_at: Optional[datetime]
    ) -> None:
        """next_retry_at이 None이면 더 이상 재시도하지 않음 (dead)"""
        row = self.db.get(OutboxTaskModel, task_id)
        if row is None:
            return
        row.last_error = error[:2000]
        if next_retry_at is None:
            row.status = OutboxStatus.DEAD.value
            row.processed_at = datetime.now(timezone.utc)
        else:
            row.status = OutboxStatus.ERROR.value
            row.next_retry_at = next_retry_at
        self.db.commit()
