"""
포인트 전액 결제 (pay-with-points)

단계와 실패 처리:
1. 필요 포인트 = ceil(주문 총액 / 10)
2. 잔액 확인 - 부족하면 변경 없이 InsufficientBalanceError
3. 포인트 차감 - 실패하면 중단 (주문은 pending 유지)
4. 주문 확정 (pending -> confirmed 조건부 UPDATE) - 되돌릴 수 없는 지점
   다른 요청이 먼저 상태를 바꿨다면 차감한 포인트를 환불하고 실패 처리
5~7. 적립 포인트 계산/적립, 정산 레코드 기록 - 실패해도 로그만 남김
8. 키 할당/확인 메일은 outbox 작업으로 등록
"""

import logging
import time
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopapi.config import Settings
from shopapi.core.exceptions import (
    BusinessLogicError,
    InsufficientBalanceError,
    InternalServerError,
    NotFoundError,
)
from shopapi.models.order import OrderStatus
from shopapi.models.points import PointsTransactionType
from shopapi.repositories.order_points_repository import OrderPointsRepository
from shopapi.repositories.order_repository import OrderRepository
from shopapi.schemas.order import PayWithPointsResponse
from shopapi.services.outbox_service import OutboxService, TASK_ORDER_FULFILL
from shopapi.services.point_service import PointService
from shopapi.utils.points_math import (
    calculate_earned_points,
    points_to_pesos,
    required_points_for,
)

logger = logging.getLogger(__name__)


def parse_order_id(raw: Union[int, str, None]) -> int:
    """요청의 orderId(문자열 또는 숫자)를 정수로 변환"""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise BusinessLogicError("ORDER_ID_REQUIRED", "Order ID is required")
    if isinstance(raw, bool):
        raise BusinessLogicError("INVALID_ORDER_ID", "Invalid order ID")
    try:
        order_id = int(str(raw).strip())
    except ValueError:
        raise BusinessLogicError("INVALID_ORDER_ID", "Invalid order ID")
    if order_id <= 0:
        raise BusinessLogicError("INVALID_ORDER_ID", "Invalid order ID")
    return order_id


class CheckoutService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.order_repo = OrderRepository(db)
        self.order_points_repo = OrderPointsRepository(db)
        self.point_service = PointService(db)
        self.outbox_service = OutboxService(db, settings)

    def pay_with_points(self, user_id: str, order_id: int) -> PayWithPointsResponse:
        """포인트로 주문 전액 결제

        Args:
            user_id: 요청한 사용자 ID
            order_id: 결제할 주문 ID (사용자 소유, pending 상태)

        Returns:
            PayWithPointsResponse: 결제 결과
        """
        order = self.order_repo.get_user_order(user_id, order_id)
        if order is None:
            raise NotFoundError("Order not found or does not belong to user")
        if order.status != OrderStatus.PENDING:
            raise BusinessLogicError(
                "ORDER_NOT_PENDING",
                f"Order is not pending (status: {order.status.value})",
            )

        order_total = order.items_total
        required_points = required_points_for(order_total)

        balance = self.point_service.get_balance(user_id)
        if balance.balance < required_points:
            raise InsufficientBalanceError(
                required_points=required_points, available=balance.balance
            )

        deduction = self.point_service.deduct(
            user_id,
            required_points,
            description=f"Payment for order #{order_id}",
            order_id=order_id,
            metadata={"method": "points", "order_total": order_total},
        )
        if not deduction.success:
            if deduction.is_insufficient:
                # 잔액 확인 이후 다른 요청이 먼저 포인트를 사용한 경우
                raise InsufficientBalanceError(
                    required_points=required_points,
                    available=deduction.balance_after or 0,
                )
            raise InternalServerError("Failed to deduct points")

        payment_id = f"points-payment-{int(time.time() * 1000)}"
        if not self._confirm(order_id, payment_id, required_points):
            self._compensate(user_id, order_id, required_points)
            raise BusinessLogicError(
                "ORDER_NOT_PENDING", "Order is no longer pending; points were returned"
            )

        logger.info(
            f"Order {order_id} paid with {required_points} points by user {user_id} ({payment_id})"
        )
        self._record_points_after_payment(user_id, order_id, order_total, required_points)
        self.outbox_service.enqueue_best_effort(TASK_ORDER_FULFILL, {"order_id": order_id})

        return PayWithPointsResponse(
            success=True,
            order_id=str(order_id),
            message="Order processed successfully using points",
        )

    def _confirm(self, order_id: int, payment_id: str, points_used: int) -> bool:
        try:
            return self.order_repo.confirm_pending_order(order_id, payment_id, points_used)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to confirm order {order_id}: {str(e)}")
            return False

    def _compensate(self, user_id: str, order_id: int, points: int) -> None:
        refund = self.point_service.earn(
            user_id,
            points,
            kind=PointsTransactionType.REFUND,
            description=f"Reversal of points payment for order #{order_id}",
            order_id=order_id,
            metadata={"reason": "order_confirmation_failed"},
        )
        if not refund.success:
            logger.error(
                f"Could not return {points} points to user {user_id} for order {order_id}: {refund.message}"
            )

    def _record_points_after_payment(
        self, user_id: str, order_id: int, order_total: int, points_used: int
    ) -> None:
        """확정 이후 단계 - 적립과 정산 레코드 (실패는 로그만)"""
        discount_amount = points_to_pesos(points_used)
        paid_amount = max(0, order_total - discount_amount)
        points_earned = calculate_earned_points(paid_amount)

        if points_earned > 0:
            earned = self.point_service.earn(
                user_id,
                points_earned,
                kind=PointsTransactionType.EARNED,
                description=f"Points earned on order #{order_id}",
                order_id=order_id,
                metadata={"paid_amount": paid_amount},
            )
            if not earned.success:
                logger.error(f"Failed to credit {points_earned} earned points for order {order_id}")
                points_earned = 0

        try:
            self.order_points_repo.upsert(
                order_id=order_id,
                user_id=user_id,
                points_used=points_used,
                points_earned=points_earned,
                discount_amount=discount_amount,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to record order points for order {order_id} "
                f"(used={points_used}, earned={points_earned}): {str(e)}"
            )
