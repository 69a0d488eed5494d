import pytest
from unittest.mock import Mock, patch

from sqlalchemy.exc import SQLAlchemyError

from shopapi.core.exceptions import InsufficientBalanceError, NotFoundError
from shopapi.models.points import PointsTransactionType
from shopapi.schemas.admin_points import AdminPointsAdjustmentRequest
from shopapi.schemas.points import (
    LedgerFailureReason,
    PointsBalance,
    PointsTransactionResult,
)
from shopapi.schemas.user import User, UserRole
from shopapi.services.point_service import PointService


@pytest.fixture
def mock_db():
    return Mock()


@pytest.fixture
def point_service(mock_db):
    with patch("shopapi.services.point_service.PointsRepository") as mock_points_cls, patch(
        "shopapi.services.point_service.OrderPointsRepository"
    ), patch("shopapi.services.point_service.OrderRepository"), patch(
        "shopapi.services.point_service.UserRepository"
    ):
        mock_points_cls.return_value = Mock()
        service = PointService(mock_db)
        service.points_repo = mock_points_cls.return_value
        service.user_repo = Mock()
        return service


@pytest.fixture
def admin_user():
    return User(id="admin-1", email="admin@example.com", role=UserRole.ADMIN, is_active=True)


class TestPointService:
    """PointService 단위 테스트 (저장소 Mock)"""

    def test_earn_calls_credit(self, point_service):
        """적립은 credit 경로를 사용"""
        # Arrange
        point_service.points_repo.credit.return_value = PointsTransactionResult(
            success=True, amount=250, balance_after=250, transaction_id=1
        )

        # Act
        result = point_service.earn("user-1", 250, description="Purchase", order_id=5)

        # Assert
        assert result.success is True
        assert result.balance_after == 250
        point_service.points_repo.credit.assert_called_once_with(
            "user-1", 250, PointsTransactionType.EARNED, "Purchase", 5, None
        )
        point_service.points_repo.debit.assert_not_called()

    def test_negative_adjustment_uses_debit(self, point_service):
        """음수 조정은 조건부 차감 경로"""
        # Arrange
        point_service.points_repo.debit.return_value = PointsTransactionResult(
            success=True, amount=-40, balance_after=60
        )

        # Act
        result = point_service.earn("user-1", -40, kind=PointsTransactionType.ADJUSTMENT)

        # Assert
        assert result.success is True
        args = point_service.points_repo.debit.call_args.args
        assert args[1] == 40
        assert args[2] == PointsTransactionType.ADJUSTMENT

    def test_earn_rejects_spent_kind(self, point_service):
        # Act
        result = point_service.earn("user-1", 10, kind=PointsTransactionType.SPENT)

        # Assert
        assert result.success is False
        assert result.reason == LedgerFailureReason.INVALID_AMOUNT
        point_service.points_repo.credit.assert_not_called()

    def test_earn_rejects_negative_refund(self, point_service):
        result = point_service.earn("user-1", -5, kind=PointsTransactionType.REFUND)

        assert result.success is False
        assert result.reason == LedgerFailureReason.INVALID_AMOUNT

    def test_deduct_rejects_non_positive(self, point_service):
        assert point_service.deduct("user-1", 0).success is False
        assert point_service.deduct("user-1", -3).success is False
        point_service.points_repo.debit.assert_not_called()

    def test_deduct_storage_error_rolls_back(self, point_service, mock_db):
        """DB 오류는 예외 대신 STORAGE_ERROR 결과로 반환"""
        # Arrange
        point_service.points_repo.debit.side_effect = SQLAlchemyError("boom")

        # Act
        result = point_service.deduct("user-1", 10)

        # Assert
        assert result.success is False
        assert result.reason == LedgerFailureReason.STORAGE_ERROR
        mock_db.rollback.assert_called_once()

    def test_balance_summary_includes_value(self, point_service):
        # Arrange
        point_service.points_repo.get_or_create_balance.return_value = PointsBalance(
            user_id="user-1", balance=245, total_earned=445, total_spent=200
        )

        # Act
        result = point_service.get_balance_summary("user-1")

        # Assert
        assert result.balance == 245
        assert result.value_in_pesos == 2450
        assert result.constants.earning_divisor == 400

    def test_admin_adjust_unknown_user(self, point_service, admin_user):
        # Arrange
        point_service.user_repo.get_by_id.return_value = None
        request = AdminPointsAdjustmentRequest(user_id="ghost", amount=10, reason="Bonus")

        # Act & Assert
        with pytest.raises(NotFoundError):
            point_service.admin_adjust_points(admin_user, request)

    def test_admin_adjust_insufficient(self, point_service, admin_user):
        """잔액보다 큰 음수 조정은 InsufficientBalanceError"""
        # Arrange
        point_service.user_repo.get_by_id.return_value = Mock()
        point_service.points_repo.debit.return_value = PointsTransactionResult(
            success=False,
            reason=LedgerFailureReason.INSUFFICIENT_BALANCE,
            balance_after=30,
            message="Insufficient points balance",
        )
        request = AdminPointsAdjustmentRequest(user_id="user-1", amount=-50, reason="Correction")

        # Act & Assert
        with pytest.raises(InsufficientBalanceError):
            point_service.admin_adjust_points(admin_user, request)

    def test_admin_adjust_records_actor(self, point_service, admin_user):
        # Arrange
        point_service.user_repo.get_by_id.return_value = Mock()
        point_service.points_repo.credit.return_value = PointsTransactionResult(
            success=True, amount=100, balance_after=100, transaction_id=None
        )
        request = AdminPointsAdjustmentRequest(user_id="user-1", amount=100, reason="Bonus")

        # Act
        result = point_service.admin_adjust_points(admin_user, request)

        # Assert
        assert result.success is True
        assert result.new_balance == 100
        assert result.transaction is None
        args = point_service.points_repo.credit.call_args.args
        assert args[3] == "Bonus (Admin: admin@example.com)"
        assert args[5] == {"admin_id": "admin-1", "reason": "Bonus"}
