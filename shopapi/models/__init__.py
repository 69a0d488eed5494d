from shopapi.models.base import Base
from shopapi.models.user import Profile, UserRole
from shopapi.models.order import Order, OrderItem, OrderStatus, Product
from shopapi.models.product_key import ProductKey, ProductKeyStatus
from shopapi.models.points import (
    OrderPoints,
    PointsTransaction,
    PointsTransactionType,
    UserPoints,
)
from shopapi.models.returns import RefundMethod, Return, ReturnItem, ReturnStatus
from shopapi.models.outbox import OutboxStatus, OutboxTask
