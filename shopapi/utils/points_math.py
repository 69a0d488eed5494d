"""
포인트/금액 환산 및 비례 환불 계산

- 100 포인트 = 1000 (통화 단위), 즉 1 포인트 = 10
- 구매 금액 400당 1 포인트 적립
- 모든 금액과 포인트는 정수
"""

import math
from dataclasses import dataclass

POINTS_PER_1000_PESOS = 100
PESOS_PER_POINT = 10
EARNING_DIVISOR = 400


@dataclass(frozen=True)
class RefundSplit:
    """환불 금액의 현금/포인트 분할 결과 (저장하지 않는 계산값)"""

    money_refund: int
    points_refund: int


def _round_half_up(value: float) -> int:
    # 0.5는 항상 올림 (파이썬 round의 banker's rounding과 다름)
    return int(math.floor(value + 0.5))


def calculate_earned_points(purchase_amount) -> int:
    """구매 금액에 대한 적립 포인트. 음수 입력은 호출부에서 막아야 함"""
    return int(purchase_amount // EARNING_DIVISOR)


def points_to_pesos(points: int) -> int:
    return points * PESOS_PER_POINT


def pesos_to_points(amount) -> int:
    """금액 -> 포인트 (내림)"""
    return int(amount // PESOS_PER_POINT)


def required_points_for(order_total: int) -> int:
    """포인트 전액 결제에 필요한 포인트 (올림)"""
    return math.ceil(order_total / PESOS_PER_POINT)


def calculate_proportional_refund(
    order_total: int, points_used: int, refund_amount: int
) -> RefundSplit:
    """원 결제의 현금/포인트 비율대로 환불 금액을 나눈다

    Args:
        order_total: 주문 총액 (포인트 할인 전)
        points_used: 주문에 사용한 포인트
        refund_amount: 환불 요청 금액

    Returns:
        RefundSplit: 현금 환불액과 포인트 환불량
    """
    if order_total <= 0:
        return RefundSplit(money_refund=0, points_refund=0)

    points_discount = points_to_pesos(points_used)
    money_paid = order_total - points_discount

    # 포인트로 전액(또는 초과) 결제한 주문
    if money_paid <= 0:
        return RefundSplit(money_refund=0, points_refund=pesos_to_points(refund_amount))

    money_proportion = money_paid / order_total
    points_proportion = points_discount / order_total

    money_refund = _round_half_up(refund_amount * money_proportion)
    # pesos_to_points에서 내림한 값을 다시 반올림 (기존 동작 유지)
    points_refund = _round_half_up(
        pesos_to_points(refund_amount * points_proportion)
    )
    return RefundSplit(money_refund=money_refund, points_refund=points_refund)


def points_constants() -> dict:
    return {
        "points_per_1000_pesos": POINTS_PER_1000_PESOS,
        "pesos_per_point": PESOS_PER_POINT,
        "earning_divisor": EARNING_DIVISOR,
    }
