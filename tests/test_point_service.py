import pytest

from shopapi.core.exceptions import (
    BusinessLogicError,
    InsufficientBalanceError,
    NotFoundError,
)
from shopapi.models.points import PointsTransactionType
from shopapi.schemas.admin_points import AdminPointsAdjustmentRequest
from shopapi.schemas.points import LedgerFailureReason
from shopapi.schemas.user import User as UserSchema
from shopapi.services.point_service import PointService


@pytest.fixture
def point_service(db):
    return PointService(db)


@pytest.fixture
def buyer(make_profile):
    return make_profile(email="buyer@example.com")


@pytest.fixture
def admin_user(make_profile):
    profile = make_profile(email="admin@example.com", role="admin")
    return UserSchema.model_validate(profile)


class TestLedger:
    """포인트 원장 테스트 (sqlite)"""

    def test_balance_is_created_lazily_with_zero(self, point_service, buyer):
        """처음 조회하면 0 잔액 행이 생성된다"""
        # Act
        balance = point_service.get_balance(buyer.id)

        # Assert
        assert balance.balance == 0
        assert balance.total_earned == 0
        assert balance.total_spent == 0
        assert point_service.points_repo.count() == 1

        # 두 번째 조회는 새 행을 만들지 않음
        point_service.get_balance(buyer.id)
        assert point_service.points_repo.count() == 1

    def test_earn_then_deduct(self, point_service, buyer):
        # Act
        earned = point_service.earn(buyer.id, 250, description="Purchase", order_id=None)
        spent = point_service.deduct(buyer.id, 100, description="Use on order")

        # Assert
        assert earned.success and earned.balance_after == 250
        assert spent.success and spent.balance_after == 150
        assert spent.amount == -100

        balance = point_service.get_balance(buyer.id)
        assert balance.balance == 150
        assert balance.total_earned == 250
        assert balance.total_spent == 100

    def test_deduct_insufficient_changes_nothing(self, point_service, buyer):
        point_service.earn(buyer.id, 50)

        result = point_service.deduct(buyer.id, 51)

        assert result.success is False
        assert result.reason == LedgerFailureReason.INSUFFICIENT_BALANCE
        assert result.is_insufficient
        assert "Required: 51" in result.message

        balance = point_service.get_balance(buyer.id)
        assert balance.balance == 50
        assert balance.total_spent == 0
        assert len(point_service.list_transactions(buyer.id)) == 1

    def test_deduct_exact_balance_reaches_zero(self, point_service, buyer):
        point_service.earn(buyer.id, 80)

        result = point_service.deduct(buyer.id, 80)

        assert result.success
        assert result.balance_after == 0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_deduct_rejects_non_positive(self, point_service, buyer, amount):
        result = point_service.deduct(buyer.id, amount)

        assert result.success is False
        assert result.reason == LedgerFailureReason.INVALID_AMOUNT

    def test_earn_rejects_negative_unless_adjustment(self, point_service, buyer):
        result = point_service.earn(buyer.id, -10, kind=PointsTransactionType.REFUND)

        assert result.success is False
        assert result.reason == LedgerFailureReason.INVALID_AMOUNT

    def test_earn_rejects_spent_kind(self, point_service, buyer):
        result = point_service.earn(buyer.id, 10, kind=PointsTransactionType.SPENT)

        assert result.success is False

    def test_negative_adjustment_counts_as_spent(self, point_service, buyer):
        """음수 조정은 조건부 차감으로 처리되고 total_spent에 누적된다"""
        point_service.earn(buyer.id, 100)

        result = point_service.earn(
            buyer.id, -30, kind=PointsTransactionType.ADJUSTMENT, description="Correction"
        )

        assert result.success
        assert result.balance_after == 70
        balance = point_service.get_balance(buyer.id)
        assert balance.total_earned == 100
        assert balance.total_spent == 30

        latest = point_service.list_transactions(buyer.id)[0]
        assert latest.amount == -30
        assert latest.type == PointsTransactionType.ADJUSTMENT

    def test_negative_adjustment_cannot_go_below_zero(self, point_service, buyer):
        point_service.earn(buyer.id, 10)

        result = point_service.earn(buyer.id, -11, kind=PointsTransactionType.ADJUSTMENT)

        assert result.is_insufficient
        assert point_service.get_balance(buyer.id).balance == 10

    def test_transactions_record_signed_amounts(self, point_service, buyer):
        point_service.earn(buyer.id, 300, order_id=None, metadata={"source": "test"})
        point_service.deduct(buyer.id, 120, metadata={"method": "points"})
        point_service.earn(buyer.id, 20, kind=PointsTransactionType.REFUND)

        transactions = point_service.list_transactions(buyer.id)

        # 최신순
        assert [tx.amount for tx in transactions] == [20, -120, 300]
        assert [tx.type for tx in transactions] == [
            PointsTransactionType.REFUND,
            PointsTransactionType.SPENT,
            PointsTransactionType.EARNED,
        ]
        assert transactions[1].metadata == {"method": "points"}

    def test_totals_are_monotonic(self, point_service, buyer):
        previous = point_service.get_balance(buyer.id)
        for step in (50, -20, 10, -40):
            if step > 0:
                point_service.earn(buyer.id, step)
            else:
                point_service.deduct(buyer.id, -step)
            current = point_service.get_balance(buyer.id)
            assert current.total_earned >= previous.total_earned
            assert current.total_spent >= previous.total_spent
            assert current.balance == current.total_earned - current.total_spent
            previous = current


class TestPointQueries:
    """포인트 조회 API 서비스 테스트"""

    def test_balance_summary(self, point_service, buyer):
        point_service.earn(buyer.id, 250)

        summary = point_service.get_balance_summary(buyer.id)

        assert summary.balance == 250
        assert summary.value_in_pesos == 2500
        assert summary.constants.pesos_per_point == 10

    def test_transactions_page_has_more(self, point_service, buyer):
        for _ in range(3):
            point_service.earn(buyer.id, 10)

        first = point_service.get_transactions_page(buyer.id, limit=2, offset=0)
        second = point_service.get_transactions_page(buyer.id, limit=2, offset=2)

        assert len(first.transactions) == 2
        assert first.pagination.has_more is True
        assert first.transactions[0].value_in_pesos == 100
        assert len(second.transactions) == 1
        assert second.pagination.has_more is False

    def test_validate_points_usage(self, point_service, buyer):
        point_service.earn(buyer.id, 100)

        ok = point_service.validate_points_usage(buyer.id, 60)
        too_much = point_service.validate_points_usage(buyer.id, 101)

        assert ok.valid is True
        assert ok.discount_amount == 600
        assert ok.remaining_balance == 40
        assert too_much.valid is False
        assert too_much.remaining_balance == 100

    def test_calculate_earn(self):
        result = PointService.calculate_earn(100000)

        assert result.points_to_earn == 250
        assert result.value_in_pesos == 2500

    def test_convert(self):
        assert PointService.convert(points=200).pesos == 2000
        assert PointService.convert(pesos=2019).points == 201

    @pytest.mark.parametrize("kwargs", [{}, {"points": 1, "pesos": 10}])
    def test_convert_requires_exactly_one(self, kwargs):
        with pytest.raises(BusinessLogicError) as exc_info:
            PointService.convert(**kwargs)
        assert exc_info.value.error_code == "INVALID_CONVERSION"


class TestPreUse:
    """결제 전 포인트 사용 선언 테스트"""

    def test_declare_and_overwrite(self, point_service, buyer, make_order):
        point_service.earn(buyer.id, 500)
        order = make_order(buyer.id, [(80000, 1)])

        first = point_service.declare_pre_use(buyer.id, order.id, 200)
        second = point_service.declare_pre_use(buyer.id, order.id, 100)

        assert first.amount_to_pay == 78000
        assert second.points_used == 100
        record = point_service.get_order_points_record(order.id)
        assert record.points_used == 100
        assert record.discount_amount == 1000
        # 선언만으로는 잔액이 줄지 않는다
        assert point_service.get_balance(buyer.id).balance == 500

    def test_declare_more_than_balance(self, point_service, buyer, make_order):
        point_service.earn(buyer.id, 50)
        order = make_order(buyer.id, [(80000, 1)])

        with pytest.raises(InsufficientBalanceError) as exc_info:
            point_service.declare_pre_use(buyer.id, order.id, 51)

        assert exc_info.value.details == {"required_points": 51, "available": 50}

    def test_declare_exceeding_order_total(self, point_service, buyer, make_order):
        point_service.earn(buyer.id, 1000)
        order = make_order(buyer.id, [(5000, 1)])

        with pytest.raises(BusinessLogicError) as exc_info:
            point_service.declare_pre_use(buyer.id, order.id, 501)

        assert exc_info.value.error_code == "POINTS_EXCEED_ORDER_TOTAL"

    def test_declare_on_confirmed_order(self, point_service, buyer, make_order):
        order = make_order(buyer.id, [(5000, 1)], status="confirmed")

        with pytest.raises(BusinessLogicError) as exc_info:
            point_service.declare_pre_use(buyer.id, order.id, 0)

        assert exc_info.value.error_code == "ORDER_NOT_PENDING"

    def test_other_users_order_is_not_found(self, point_service, buyer, make_profile, make_order):
        other = make_profile()
        order = make_order(other.id, [(5000, 1)])

        with pytest.raises(NotFoundError):
            point_service.declare_pre_use(buyer.id, order.id, 0)
        with pytest.raises(NotFoundError):
            point_service.get_order_points(buyer.id, order.id)


class TestAdminPoints:
    """관리자 포인트 기능 테스트"""

    def test_adjust_records_admin_in_description(self, point_service, buyer, admin_user):
        request = AdminPointsAdjustmentRequest(user_id=buyer.id, amount=40, reason="Goodwill")

        response = point_service.admin_adjust_points(admin_user, request)

        assert response.success
        assert response.new_balance == 40
        assert response.transaction.description == "Goodwill (Admin: admin@example.com)"
        assert response.transaction.type == PointsTransactionType.ADJUSTMENT

    def test_negative_adjust_beyond_balance(self, point_service, buyer, admin_user):
        request = AdminPointsAdjustmentRequest(user_id=buyer.id, amount=-5, reason="Fix")

        with pytest.raises(InsufficientBalanceError):
            point_service.admin_adjust_points(admin_user, request)

    def test_adjust_unknown_user(self, point_service, admin_user):
        request = AdminPointsAdjustmentRequest(user_id="missing", amount=5, reason="Fix")

        with pytest.raises(NotFoundError):
            point_service.admin_adjust_points(admin_user, request)

    def test_list_balances_and_stats(self, point_service, buyer, make_profile):
        other = make_profile()
        point_service.earn(buyer.id, 300)
        point_service.earn(other.id, 100)
        point_service.deduct(other.id, 40)

        users = point_service.list_point_balances(limit=10, sort_by="balance", order="desc")
        stats = point_service.get_points_stats()

        assert [u.balance for u in users.users] == [300, 60]
        assert users.users[0].email == "buyer@example.com"
        assert users.pagination.total == 2
        assert stats.total_users == 2
        assert stats.total_points_in_circulation == 360
        assert stats.total_points_earned == 400
        assert stats.total_points_spent == 40
        assert stats.transactions_by_type == {"earned": 2, "spent": 1}

    def test_search_transactions_filters_by_type(self, point_service, buyer):
        point_service.earn(buyer.id, 100)
        point_service.deduct(buyer.id, 10)

        result = point_service.search_transactions(tx_type=PointsTransactionType.SPENT)

        assert result.pagination.total == 1
        assert result.transactions[0].amount == -10
        assert result.transactions[0].user_email == "buyer@example.com"

    def test_user_points_detail(self, point_service, buyer):
        point_service.earn(buyer.id, 70)

        detail = point_service.get_user_points_detail(buyer.id)

        assert detail.profile.email == "buyer@example.com"
        assert detail.points.balance == 70
        assert len(detail.recent_transactions) == 1
        assert detail.stats.orders_with_points == 0
