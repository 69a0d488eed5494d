from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime

from shopapi.models.outbox import OutboxStatus


class OutboxTaskSchema(BaseModel):
    id: int
    task_type: str
    payload: Dict[str, Any]
    status: OutboxStatus
    attempts: int = 0
    next_retry_at: Optional[datetime] = None
    last_error: Optional[str] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OutboxProcessResult(BaseModel):
    claimed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead: int = 0
