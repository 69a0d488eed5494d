from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Index
from sqlalchemy.orm import Mapped, mapped_column

from shopapi.models.base import BaseModel, BigIntegerPK


class ProductKeyStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"


class ProductKey(BaseModel):
    """판매 가능한 라이선스 키 재고"""

    __tablename__ = "product_keys"
    __table_args__ = (Index("idx_product_keys_product_status", "product_id", "status"),)

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("products.id"), nullable=False
    )
    license_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ProductKeyStatus.AVAILABLE.value, nullable=False
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    order_item_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_items.id"), nullable=True, index=True
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
