import sys
from datetime import datetime
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
    def __init__(self, db):
        pass

    def get_balance_summary(self, user_id):
        from shopapi.schemas.points import PointsBalanceResponse, PointsConstants

        return PointsBalanceResponse(
            balance=250,
            total_earned=300,
            total_spent=50,
            value_in_pesos=2500,
            constants=PointsConstants(
                points_per_1000_pesos=100, pesos_per_point=10, earning_divisor=400
            ),
        )

    def get_transactions_page(self, user_id, limit=50, offset=0):
        from shopapi.models.points import PointsTransactionType
        from shopapi.schemas.pagination import OffsetPagination
        from shopapi.schemas.points import PointsTransactionItem, PointsTransactionsResponse

        items = [
            PointsTransactionItem(
                id=2,
                user_id=user_id,
                amount=-50,
                type=PointsTransactionType.SPENT,
                description="Use on order",
                order_id=7,
                created_at=datetime(2025, 1, 2),
                metadata={"method": "points"},
                value_in_pesos=500,
            )
        ]
        return PointsTransactionsResponse(
            transactions=items,
            pagination=OffsetPagination(limit=limit, offset=offset, has_more=False),
        )

    def validate_points_usage(self, user_id, points_to_use):
        from shopapi.schemas.points import ValidatePointsResponse

        valid = points_to_use <= 250
        return ValidatePointsResponse(
            valid=valid,
            current_balance=250,
            requested_points=points_to_use,
            discount_amount=points_to_use * 10,
            remaining_balance=250 - points_to_use if valid else 250,
        )

    def get_order_points(self, user_id, order_id):
        from shopapi.core.exceptions import NotFoundError
        from shopapi.schemas.points import OrderPointsResponse

        if order_id != 7:
            raise NotFoundError("No points information for this order")
        return OrderPointsResponse(order_id=7, points_used=200, points_earned=195, discount_amount=2000)

    def declare_pre_use(self, user_id, order_id, points_to_use):
        from shopapi.core.exceptions import InsufficientBalanceError
        from shopapi.schemas.points import PreUsePointsResponse

        if points_to_use > 250:
            raise InsufficientBalanceError(required_points=points_to_use, available=250)
        return PreUsePointsResponse(
            order_id=order_id,
            points_used=points_to_use,
            discount_amount=points_to_use * 10,
            amount_to_pay=80000 - points_to_use * 10,
        )


def _stub_current_user():
    from shopapi.schemas.user import User

    return User(id="user-1", email="me@example.com", full_name="Me", is_active=True)


@pytest.fixture(autouse=True)
def patch_point_service_and_auth():
    from shopapi.core import auth_middleware

    container: Container = app.container  # type: ignore
    override = providers.Factory(FakePointService, db=container.repositories.get_db)
    container.services.point_service.override(override)
    app.dependency_overrides[auth_middleware.get_current_active_user] = lambda: _stub_current_user()

    yield

    container.services.point_service.reset_override()
    app.dependency_overrides.pop(auth_middleware.get_current_active_user, None)


client = TestClient(app)


def test_get_balance():
    res = client.get("/api/v1/points/balance")
    assert res.status_code == 200
    body = res.json()
    assert body["balance"] == 250
    assert body["value_in_pesos"] == 2500
    assert body["constants"]["earning_divisor"] == 400


def test_get_transactions():
    res = client.get("/api/v1/points/transactions?limit=10&offset=0")
    assert res.status_code == 200
    body = res.json()
    assert body["transactions"][0]["amount"] == -50
    assert body["transactions"][0]["type"] == "spent"
    assert body["transactions"][0]["metadata"] == {"method": "points"}
    assert body["pagination"]["limit"] == 10


def test_get_transactions_limit_out_of_range():
    res = client.get("/api/v1/points/transactions?limit=500")
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "VALIDATION_001"


def test_validate_points():
    res = client.post("/api/v1/points/validate", json={"points_to_use": 300})
    assert res.status_code == 200
    assert res.json()["valid"] is False


def test_calculate_earn_uses_real_formula():
    res = client.get("/api/v1/points/calculate-earn", params={"amount": 100000})
    assert res.status_code == 200
    assert res.json()["points_to_earn"] == 250


def test_convert_points_to_pesos():
    res = client.get("/api/v1/points/convert", params={"points": 200})
    assert res.status_code == 200
    assert res.json() == {"points": 200, "pesos": 2000}


def test_convert_requires_exactly_one_value():
    res = client.get("/api/v1/points/convert")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_CONVERSION"


def test_get_order_points_not_found():
    res = client.get("/api/v1/points/order/8")
    assert res.status_code == 404
    assert res.json()["success"] is False


def test_use_points_on_order():
    res = client.post("/api/v1/points/order/7/use", json={"points_to_use": 200})
    assert res.status_code == 200
    assert res.json()["amount_to_pay"] == 78000


def test_use_points_insufficient_balance():
    res = client.post("/api/v1/points/order/7/use", json={"points_to_use": 251})
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "BALANCE_001"
    assert body["error"]["details"] == {"required_points": 251, "available": 250}


def test_requires_authentication():
    from shopapi.core import auth_middleware

    app.dependency_overrides.pop(auth_middleware.get_current_active_user, None)
    res = client.get("/api/v1/points/balance")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate") == "Bearer"
