import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dependency_injector import providers

from shopapi.containers import Container
from shopapi.main import app


class FakePointService:
    last_adjustment = None

    def __init__(self, db):
        pass

    def _user(self, user_id="user-1", balance=300):
        from shopapi.schemas.admin_points import AdminPointsUser

        return AdminPointsUser(
            user_id=user_id,
            email=f"{user_id}@example.com",
            balance=balance,
            total_earned=balance,
            total_spent=0,
        )

    def list_point_balances(self, limit=50, offset=0, sort_by="balance", order="desc"):
        from shopapi.schemas.admin_points import AdminPointsUsersResponse
        from shopapi.schemas.pagination import OffsetPagination

        users = [self._user("user-1", 300), self._user("user-2", 60)]
        if order == "asc":
            users.reverse()
        return AdminPointsUsersResponse(
            users=users,
            pagination=OffsetPagination(limit=limit, offset=offset, total=2, has_more=False),
        )

    def admin_adjust_points(self, admin, request):
        from shopapi.core.exceptions import InsufficientBalanceError
        from shopapi.schemas.admin_points import AdminPointsAdjustmentResponse

        if request.amount < -300:
            raise InsufficientBalanceError(
                required_points=-request.amount,
                available=300,
                message="Adjustment would make the balance negative",
            )
        FakePointService.last_adjustment = (admin.email, request.user_id, request.amount)
        return AdminPointsAdjustmentResponse(success=True, new_balance=300 + request.amount)

    def search_transactions(self, tx_type=None, user_id=None, start_date=None, end_date=None, limit=50, offset=0):
        from shopapi.schemas.admin_points import AdminTransactionsResponse
        from shopapi.schemas.pagination import OffsetPagination

        FakePointService.last_search = tx_type
        return AdminTransactionsResponse(
            transactions=[],
            pagination=OffsetPagination(limit=limit, offset=offset, total=0, has_more=False),
        )

    def get_points_stats(self):
        from shopapi.schemas.admin_points import PointsStatsResponse
        from shopapi.schemas.points import PointsConstants

        return PointsStatsResponse(
            total_users=2,
            total_points_in_circulation=360,
            total_points_earned=400,
            total_points_spent=40,
            value_in_pesos=3600,
            constants=PointsConstants(
                points_per_1000_pesos=100, pesos_per_point=10, earning_divisor=400
            ),
            transactions_by_type={"earned": 2, "spent": 1},
            top_users=[self._user()],
        )


def _stub_admin():
    from shopapi.schemas.user import User, UserRole

    return User(id="admin-1", email="admin@example.com", role=UserRole.ADMIN, is_active=True)


def _stub_customer():
    from shopapi.schemas.user import User

    return User(id="user-1", email="me@example.com", is_active=True)


@pytest.fixture(autouse=True)
def patch_point_service_and_auth():
    from shopapi.core import auth_middleware

    container: Container = app.container  # type: ignore
    container.services.point_service.override(
        providers.Factory(FakePointService, db=container.repositories.get_db)
    )
    app.dependency_overrides[auth_middleware.get_current_active_user] = lambda: _stub_admin()

    yield

    container.services.point_service.reset_override()
    app.dependency_overrides.pop(auth_middleware.get_current_active_user, None)


client = TestClient(app)


def test_list_users_points():
    res = client.get("/api/v1/admin/points/users", params={"sort_by": "balance", "order": "asc"})
    assert res.status_code == 200
    body = res.json()
    assert [u["balance"] for u in body["users"]] == [60, 300]
    assert body["pagination"]["total"] == 2


def test_list_users_rejects_unknown_sort_field():
    res = client.get("/api/v1/admin/points/users", params={"sort_by": "email"})
    assert res.status_code == 422


def test_adjust_points():
    res = client.post(
        "/api/v1/admin/points/adjust",
        json={"user_id": "user-1", "amount": -40, "reason": "Correction"},
    )
    assert res.status_code == 200
    assert res.json()["new_balance"] == 260
    assert FakePointService.last_adjustment == ("admin@example.com", "user-1", -40)


def test_adjust_points_zero_amount_is_invalid():
    res = client.post(
        "/api/v1/admin/points/adjust",
        json={"user_id": "user-1", "amount": 0, "reason": "Nothing"},
    )
    assert res.status_code == 422


def test_adjust_points_below_zero():
    res = client.post(
        "/api/v1/admin/points/adjust",
        json={"user_id": "user-1", "amount": -301, "reason": "Too much"},
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "BALANCE_001"


def test_search_transactions_by_type():
    res = client.get("/api/v1/admin/points/transactions", params={"type": "refund"})
    assert res.status_code == 200
    assert FakePointService.last_search.value == "refund"


def test_stats():
    res = client.get("/api/v1/admin/points/stats")
    assert res.status_code == 200
    body = res.json()
    assert body["total_points_in_circulation"] == 360
    assert body["transactions_by_type"]["spent"] == 1


def test_non_admin_is_forbidden():
    from shopapi.core import auth_middleware

    app.dependency_overrides[auth_middleware.get_current_active_user] = lambda: _stub_customer()
    res = client.get("/api/v1/admin/points/stats")
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "Admin access required"
