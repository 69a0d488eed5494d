from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class WebhookSignature(BaseModel):
    properties: List[str] = Field(default_factory=list)
    checksum: str = ""


class WebhookEvent(BaseModel):
    """결제 게이트웨이 이벤트 (transaction.updated 등)"""

    model_config = ConfigDict(extra="allow")

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
    signature: Optional[WebhookSignature] = None
    timestamp: Optional[int] = None
    environment: Optional[str] = None

    @property
    def transaction(self) -> Dict[str, Any]:
        return self.data.get("transaction") or {}


class WebhookProcessResult(BaseModel):
    success: bool
    message: str


class IntegritySignatureRequest(BaseModel):
    reference: str = Field(..., min_length=1)
    amount_in_cents: int = Field(..., gt=0)
    currency: Optional[str] = None


class IntegritySignatureResponse(BaseModel):
    reference: str
    amount_in_cents: int
    currency: str
    signature: str
