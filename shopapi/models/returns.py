from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopapi.models.base import BaseModel, BigIntegerPK


class ReturnStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class RefundMethod(str, Enum):
    ORIGINAL_PAYMENT = "original_payment"
    STORE_CREDIT = "store_credit"
    BANK_TRANSFER = "bank_transfer"


class Return(BaseModel):
    __tablename__ = "returns"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ReturnStatus.PENDING.value, nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    refund_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    refund_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    items: Mapped[List["ReturnItem"]] = relationship(
        "ReturnItem", back_populates="parent", lazy="selectin"
    )


class ReturnItem(BaseModel):
    __tablename__ = "return_items"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    return_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("returns.id"), nullable=False, index=True
    )
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_items.id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)

    parent: Mapped["Return"] = relationship("Return", back_populates="items")
