"""
반품 서비스 - 반품 신청/조회/취소와 관리자 승인 시 비례 환불

승인 처리 순서:
1. 반품과 원 주문(사용자, 총액) 조회
2. 반품을 refunded로 선점 (pending 조건부 UPDATE). 실패하면 다른 처리자가 이미 처리한 것
3. 주문 정산 레코드 조회 - 없거나 포인트 미사용이면 전액 현금 환불
4. 현금/포인트 비례 분할 계산 후 포인트 환불분 재적립
   실패해도 승인은 유지 (로그 후 수동 정산)
5. 재적립 성공 시 refund_amount를 현금분으로 바꾸고 관리자 메모에 포인트 내역 추가
6. 결과 메일은 outbox 작업으로 등록
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopapi.config import Settings
from shopapi.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    InternalServerError,
    NotFoundError,
    ValidationError,
)
from shopapi.models.order import OrderStatus
from shopapi.models.points import PointsTransactionType
from shopapi.models.returns import ReturnStatus
from shopapi.repositories.order_points_repository import OrderPointsRepository
from shopapi.repositories.order_repository import OrderRepository
from shopapi.repositories.return_repository import ReturnRepository
from shopapi.schemas.pagination import OffsetPagination
from shopapi.schemas.returns import (
    CreateReturnRequest,
    ProcessReturnRequest,
    ReturnListResponse,
    ReturnProcessResult,
    ReturnSchema,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.outbox_service import OutboxService, TASK_RETURN_NOTIFY
from shopapi.services.point_service import PointService
from shopapi.utils.points_math import calculate_proportional_refund, points_to_pesos

logger = logging.getLogger(__name__)

RETURNABLE_ORDER_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.DELIVERED)


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class ReturnService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.return_repo = ReturnRepository(db)
        self.order_repo = OrderRepository(db)
        self.order_points_repo = OrderPointsRepository(db)
        self.point_service = PointService(db)
        self.outbox_service = OutboxService(db, settings)

    # ------------------------------------------------------------------
    # 사용자
    # ------------------------------------------------------------------

    def create_return(self, user_id: str, request: CreateReturnRequest) -> ReturnSchema:
        order = self.order_repo.get_user_order(user_id, request.order_id)
        if order is None:
            raise NotFoundError("Order not found or does not belong to user")
        if order.status not in RETURNABLE_ORDER_STATUSES:
            raise BusinessLogicError(
                "ORDER_NOT_RETURNABLE",
                f"Orders in status {order.status.value} cannot be returned",
            )
        if self.return_repo.has_pending_for_order(order.id):
            raise BusinessLogicError(
                "RETURN_ALREADY_PENDING", "There is already a pending return for this order"
            )

        items_by_id = {item.id: item for item in order.items}
        unknown = [item_id for item_id in request.order_item_ids if item_id not in items_by_id]
        if unknown:
            raise ValidationError(
                "Some items do not belong to this order", {"order_item_ids": unknown}
            )

        selected = [items_by_id[item_id] for item_id in dict.fromkeys(request.order_item_ids)]
        refund_amount = sum(item.price * item.quantity for item in selected)
        created = self.return_repo.create_with_items(
            order_id=order.id,
            user_id=user_id,
            reason=request.reason,
            refund_amount=refund_amount,
            items=[
                {
                    "order_item_id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "price": item.price,
                }
                for item in selected
            ],
        )
        logger.info(
            f"Return {created.id} created for order {order.id} by user {user_id} (refund {refund_amount})"
        )
        return created

    def get_return(self, return_id: int, requester: UserSchema) -> ReturnSchema:
        return_request = self.return_repo.get_by_id(return_id)
        if return_request is None:
            raise NotFoundError("Return not found")
        if return_request.user_id != requester.id and not requester.is_admin:
            raise NotFoundError("Return not found")
        return return_request

    def list_returns(
        self,
        user_id: Optional[str] = None,
        status: Optional[ReturnStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ReturnListResponse:
        returns, total = self.return_repo.list_returns(user_id, status, limit, offset)
        return ReturnListResponse(
            returns=returns,
            pagination=OffsetPagination(
                limit=limit, offset=offset, total=total, has_more=offset + limit < total
            ),
        )

    def cancel_return(self, return_id: int, user: UserSchema) -> ReturnSchema:
        return_request = self.get_return(return_id, user)
        if return_request.user_id != user.id:
            raise AuthorizationError("Only the requester can cancel a return")
        if not self.return_repo.finalize_pending(return_id, ReturnStatus.CANCELLED):
            raise BusinessLogicError("RETURN_NOT_PENDING", "Only pending returns can be cancelled")
        return self.return_repo.get_by_id(return_id)

    # ------------------------------------------------------------------
    # 관리자
    # ------------------------------------------------------------------

    def process_return(
        self, return_id: int, request: ProcessReturnRequest, admin: UserSchema
    ) -> ReturnProcessResult:
        """반품 승인/거절

        Args:
            return_id: 반품 ID
            request: 처리 요청 (approved는 refund_method 필수)
            admin: 처리하는 관리자

        Returns:
            ReturnProcessResult: 확정된 반품과 현금/포인트 환불 내역
        """
        return_request = self.return_repo.get_by_id(return_id)
        if return_request is None:
            raise NotFoundError("Return not found")
        if return_request.status != ReturnStatus.PENDING:
            raise BusinessLogicError(
                "RETURN_NOT_PENDING",
                f"Return is not pending (status: {return_request.status.value})",
            )

        if request.status == "rejected":
            return self._reject(return_request, request, admin)

        if request.refund_method is None:
            raise ValidationError("Refund method is required for approval")
        return self._approve(return_request, request, admin)

    def _reject(
        self, return_request: ReturnSchema, request: ProcessReturnRequest, admin: UserSchema
    ) -> ReturnProcessResult:
        changed = self.return_repo.finalize_pending(
            return_request.id,
            ReturnStatus.REJECTED,
            admin_notes=request.admin_notes or return_request.admin_notes,
            processed_by=admin.id,
            processed_at=datetime.now(timezone.utc),
        )
        if not changed:
            raise BusinessLogicError("RETURN_NOT_PENDING", "Return was processed concurrently")

        logger.info(f"Return {return_request.id} rejected by admin {admin.id}")
        self.outbox_service.enqueue_best_effort(
            TASK_RETURN_NOTIFY, {"return_id": return_request.id, "points_refunded": 0}
        )
        return ReturnProcessResult(return_request=self.return_repo.get_by_id(return_request.id))

    def _approve(
        self, return_request: ReturnSchema, request: ProcessReturnRequest, admin: UserSchema
    ) -> ReturnProcessResult:
        order = self.order_repo.get_by_id(return_request.order_id)
        if order is None:
            raise NotFoundError("Order for this return no longer exists")

        refund_amount = return_request.refund_amount
        admin_notes = request.admin_notes or return_request.admin_notes
        points_refunded = 0
        points_refund_failed = False

        # 선점: pending -> refunded 전환에 성공한 처리자만 포인트를 재적립한다
        claimed = self.return_repo.finalize_pending(
            return_request.id,
            ReturnStatus.REFUNDED,
            refund_method=request.refund_method.value,
            refund_amount=refund_amount,
            admin_notes=admin_notes,
            processed_by=admin.id,
            processed_at=datetime.now(timezone.utc),
        )
        if not claimed:
            raise BusinessLogicError("RETURN_NOT_PENDING", "Return was processed concurrently")

        order_points = self.order_points_repo.get_by_order_id(order.id)
        if order_points is not None and order_points.points_used > 0:
            split = calculate_proportional_refund(
                order.total_amount, order_points.points_used, return_request.refund_amount
            )
            logger.info(
                f"Return {return_request.id} split: money {split.money_refund}, points {split.points_refund}"
            )
            if split.points_refund > 0:
                credited = self.point_service.earn(
                    order.user_id,
                    split.points_refund,
                    kind=PointsTransactionType.REFUND,
                    description=f"Points refund for return #{return_request.id} (order #{order.id})",
                    order_id=order.id,
                    metadata={"return_id": return_request.id, "order_id": order.id},
                )
                if credited.success:
                    points_refunded = split.points_refund
                    refund_amount = split.money_refund
                    admin_notes = _append_note(
                        admin_notes,
                        f"Points refunded: {split.points_refund} points "
                        f"(${points_to_pesos(split.points_refund):,}). "
                        f"Money refund: ${split.money_refund:,}.",
                    )
                    try:
                        self.return_repo.update_values(
                            return_request.id, refund_amount=refund_amount, admin_notes=admin_notes
                        )
                    except SQLAlchemyError as e:
                        self.db.rollback()
                        logger.error(
                            f"Return {return_request.id} refunded {points_refunded} points but the "
                            f"money refund {refund_amount} could not be saved: {str(e)}"
                        )
                        raise InternalServerError("Failed to record refund split")
                else:
                    points_refund_failed = True
                    logger.error(
                        f"Points refund of {split.points_refund} failed for return {return_request.id} "
                        f"(user {order.user_id}): {credited.message}. Continuing with approval."
                    )

        logger.info(
            f"Return {return_request.id} refunded by admin {admin.id}: "
            f"money {refund_amount}, points {points_refunded}"
        )
        self.outbox_service.enqueue_best_effort(
            TASK_RETURN_NOTIFY,
            {"return_id": return_request.id, "points_refunded": points_refunded},
        )
        return ReturnProcessResult(
            return_request=self.return_repo.get_by_id(return_request.id),
            money_refund=refund_amount,
            points_refunded=points_refunded,
            points_refund_failed=points_refund_failed,
        )
