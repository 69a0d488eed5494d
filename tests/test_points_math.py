import pytest

from shopapi.utils.points_math import (
    RefundSplit,
    calculate_earned_points,
    calculate_proportional_refund,
    pesos_to_points,
    points_constants,
    points_to_pesos,
    required_points_for,
)


class TestConversions:
    """포인트/금액 환산 테스트"""

    @pytest.mark.parametrize(
        "amount, expected",
        [(0, 0), (399, 0), (400, 1), (799, 1), (1000, 2), (100000, 250), (78000, 195)],
    )
    def test_calculate_earned_points(self, amount, expected):
        assert calculate_earned_points(amount) == expected

    def test_points_to_pesos(self):
        assert points_to_pesos(0) == 0
        assert points_to_pesos(200) == 2000

    def test_pesos_to_points_floors(self):
        assert pesos_to_points(2000) == 200
        assert pesos_to_points(19) == 1
        assert pesos_to_points(9.99) == 0

    def test_points_round_trip_is_exact(self):
        for points in (0, 1, 37, 250, 12345):
            assert pesos_to_points(points_to_pesos(points)) == points

    def test_required_points_rounds_up(self):
        assert required_points_for(80000) == 8000
        assert required_points_for(80001) == 8001
        assert required_points_for(5) == 1
        assert required_points_for(0) == 0

    def test_constants(self):
        assert points_constants() == {
            "points_per_1000_pesos": 100,
            "pesos_per_point": 10,
            "earning_divisor": 400,
        }


class TestProportionalRefund:
    """비례 환불 계산 테스트"""

    def test_no_points_used_refunds_money_only(self):
        split = calculate_proportional_refund(100000, 0, 40000)

        assert split == RefundSplit(money_refund=40000, points_refund=0)

    def test_mixed_payment_75_25(self):
        """총액 100000, 포인트 2500(=25000) 사용, 전액 환불"""
        split = calculate_proportional_refund(100000, 2500, 100000)

        assert split.money_refund == 75000
        assert split.points_refund == 2500

    def test_mixed_payment_25_75(self):
        split = calculate_proportional_refund(100000, 7500, 100000)

        assert split.money_refund == 25000
        assert split.points_refund == 7500

    def test_mixed_payment_50_50(self):
        split = calculate_proportional_refund(100000, 5000, 100000)

        assert split == RefundSplit(money_refund=50000, points_refund=5000)

    def test_partial_refund_50_50(self):
        split = calculate_proportional_refund(100000, 5000, 40000)

        assert split == RefundSplit(money_refund=20000, points_refund=2000)

    def test_partial_refund_keeps_proportion(self):
        split = calculate_proportional_refund(100000, 2500, 40000)

        assert split.money_refund == 30000
        assert split.points_refund == 1000

    def test_fully_paid_with_points(self):
        split = calculate_proportional_refund(50000, 5000, 20000)

        assert split.money_refund == 0
        assert split.points_refund == 2000

    def test_points_exceeding_total_treated_as_points_only(self):
        split = calculate_proportional_refund(1000, 500, 1000)

        assert split.money_refund == 0
        assert split.points_refund == 100

    def test_small_refund_floors_points(self):
        """환불액이 작으면 포인트분이 1포인트 미만으로 버려질 수 있다"""
        split = calculate_proportional_refund(100000, 2500, 30)

        # 30 * 0.75 = 22.5 -> 23, 30 * 0.25 = 7.5 -> 0 포인트
        assert split.money_refund == 23
        assert split.points_refund == 0

    def test_half_rounds_up(self):
        split = calculate_proportional_refund(1000, 50, 1)

        # 1 * 0.5 = 0.5 -> 1
        assert split.money_refund == 1

    def test_zero_total(self):
        assert calculate_proportional_refund(0, 100, 5000) == RefundSplit(0, 0)

    def test_end_to_end_scenario_split(self):
        """80000 주문에 200포인트 사용 후 전액 반품"""
        split = calculate_proportional_refund(80000, 200, 80000)

        assert split.money_refund == 78000
        assert split.points_refund == 200

    def test_never_refunds_more_value_than_requested(self):
        for total, used, refund in [(100000, 2500, 100000), (80000, 200, 33333), (9999, 333, 5000)]:
            split = calculate_proportional_refund(total, used, refund)
            assert split.money_refund + points_to_pesos(split.points_refund) <= refund + 1
