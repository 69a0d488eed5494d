"""
주문/반품 알림 메일 - 본문 생성과 SES 발송

발송 실패는 예외로 전파되어 outbox 워커가 재시도합니다.
SES_FROM_EMAIL이 설정되지 않은 환경(로컬/테스트)에서는 발송을 건너뜁니다.
"""

import logging
from html import escape
from typing import List, Optional

from shopapi.config import Settings
from shopapi.schemas.order import OrderSchema, ProductKeySchema
from shopapi.schemas.points import OrderPointsSchema
from shopapi.schemas.returns import ReturnSchema
from shopapi.services.aws_service import AwsService
from shopapi.utils.points_math import points_to_pesos

logger = logging.getLogger(__name__)


def _money(amount: int) -> str:
    return f"${amount:,}"


class MailService:
    def __init__(self, settings: Settings, aws_service: Optional[AwsService] = None):
        self.settings = settings
        self.aws_service = aws_service or AwsService(settings)

    def _send(self, to_email: str, subject: str, body_html: str) -> bool:
        if not self.settings.SES_FROM_EMAIL:
            logger.warning(f"SES_FROM_EMAIL not configured, skipping email to {to_email}: {subject}")
            return False
        self.aws_service.send_email(to_email, subject, body_html)
        return True

    def send_order_confirmation(
        self,
        to_email: str,
        order: OrderSchema,
        keys: List[ProductKeySchema],
        order_points: Optional[OrderPointsSchema] = None,
    ) -> bool:
        rows = "".join(f"<li><code>{escape(key.license_key)}</code></li>" for key in keys)
        points_html = ""
        if order_points is not None:
            if order_points.points_used:
                points_html += (
                    f"<p>Puntos usados: {order_points.points_used} "
                    f"(descuento {_money(order_points.discount_amount)})</p>"
                )
            if order_points.points_earned:
                points_html += f"<p>Puntos ganados: {order_points.points_earned}</p>"

        body = (
            f"<h2>Pedido #{order.id} confirmado</h2>"
            f"<p>Total: {_money(order.items_total)}</p>"
            f"{points_html}"
            f"<h3>Tus licencias</h3><ul>{rows}</ul>"
            f"<p><a href=\"{self.settings.FRONTEND_URL}/orders/{order.id}\">Ver pedido</a></p>"
        )
        return self._send(to_email, f"Confirmación de pedido #{order.id}", body)

    def send_payment_failed(self, to_email: str, order: OrderSchema) -> bool:
        body = (
            f"<h2>No pudimos procesar el pago del pedido #{order.id}</h2>"
            f"<p>Puedes intentarlo de nuevo desde "
            f"<a href=\"{self.settings.FRONTEND_URL}/orders/{order.id}\">tu pedido</a>.</p>"
        )
        return self._send(to_email, f"Pago rechazado - pedido #{order.id}", body)

    def send_return_processed(
        self, to_email: str, return_request: ReturnSchema, points_refunded: int = 0
    ) -> bool:
        if return_request.status.value == "rejected":
            title = f"Tu solicitud de devolución #{return_request.id} fue rechazada"
        else:
            title = f"Tu devolución #{return_request.id} fue aprobada"

        lines = [f"<h2>{title}</h2>"]
        if return_request.status.value != "rejected":
            lines.append(f"<p>Reembolso: {_money(return_request.refund_amount)}</p>")
            if points_refunded:
                lines.append(
                    f"<p>Puntos devueltos: {points_refunded} "
                    f"(equivalen a {_money(points_to_pesos(points_refunded))})</p>"
                )
        if return_request.admin_notes:
            lines.append(f"<p>{escape(return_request.admin_notes)}</p>")
        return self._send(to_email, title, "".join(lines))
