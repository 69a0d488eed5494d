"""
주문 이행 - 라이선스 키 할당과 알림 메일

outbox 워커에서 호출되며, 재시도되어도 안전하도록 작성되어 있습니다:
- 항목별로 이미 할당된 키 수를 빼고 남은 수량만 할당
- 재고가 부족하면 FulfillmentError를 던져 나중에 다시 시도
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from shopapi.config import Settings
from shopapi.models.order import OrderStatus
from shopapi.repositories.order_points_repository import OrderPointsRepository
from shopapi.repositories.order_repository import OrderRepository
from shopapi.repositories.product_key_repository import ProductKeyRepository
from shopapi.repositories.return_repository import ReturnRepository
from shopapi.repositories.user_repository import UserRepository
from shopapi.services.mail_service import MailService

logger = logging.getLogger(__name__)


class FulfillmentError(Exception):
    """재시도 가능한 이행 실패 (키 재고 부족 등)"""


class FulfillmentService:
    def __init__(
        self, db: Session, settings: Settings, mail_service: Optional[MailService] = None
    ):
        self.db = db
        self.settings = settings
        self.order_repo = OrderRepository(db)
        self.order_points_repo = OrderPointsRepository(db)
        self.key_repo = ProductKeyRepository(db)
        self.return_repo = ReturnRepository(db)
        self.user_repo = UserRepository(db)
        self.mail_service = mail_service or MailService(settings)

    def fulfill_order(self, order_id: int) -> None:
        """확정된 주문의 모든 항목에 키를 할당하고 확인 메일 발송"""
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise FulfillmentError(f"Order {order_id} not found")
        if order.status not in (OrderStatus.CONFIRMED, OrderStatus.DELIVERED):
            logger.warning(f"Skipping fulfillment for order {order_id} in status {order.status.value}")
            return

        shortages = []
        for item in order.items:
            missing = item.quantity - self.key_repo.count_assigned_for_item(item.id)
            if missing <= 0:
                continue
            assigned = self.key_repo.assign_keys(item.product_id, order.user_id, item.id, missing)
            logger.info(
                f"Assigned {len(assigned)}/{missing} keys of product {item.product_id} for order {order_id}"
            )
            if len(assigned) < missing:
                shortages.append(item.product_id)

        if shortages:
            raise FulfillmentError(
                f"Not enough license keys for order {order_id}, products: {shortages}"
            )

        profile = self.user_repo.get_by_id(order.user_id)
        if profile is None:
            raise FulfillmentError(f"Buyer profile {order.user_id} not found")

        self.mail_service.send_order_confirmation(
            to_email=profile.email,
            order=order,
            keys=self.key_repo.get_keys_for_order(order_id),
            order_points=self.order_points_repo.get_by_order_id(order_id),
        )

    def notify_payment_failed(self, order_id: int) -> None:
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise FulfillmentError(f"Order {order_id} not found")
        profile = self.user_repo.get_by_id(order.user_id)
        if profile is None:
            raise FulfillmentError(f"Buyer profile {order.user_id} not found")
        self.mail_service.send_payment_failed(profile.email, order)

    def notify_return_processed(self, return_id: int, points_refunded: int = 0) -> None:
        return_request = self.return_repo.get_by_id(return_id)
        if return_request is None:
            raise FulfillmentError(f"Return {return_id} not found")
        profile = self.user_repo.get_by_id(return_request.user_id)
        if profile is None:
            raise FulfillmentError(f"Profile {return_request.user_id} not found")
        self.mail_service.send_return_processed(
            profile.email, return_request, points_refunded=points_refunded
        )
