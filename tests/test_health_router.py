from unittest.mock import Mock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from shopapi.database.session import get_db
from shopapi.main import app

client = TestClient(app)


def test_health_ok():
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "healthy", "database": "ok"}


def test_health_degraded_when_database_fails():
    broken = Mock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
    app.dependency_overrides[get_db] = lambda: broken
    try:
        res = client.get("/health")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert res.status_code == 200
    assert res.json()["status"] == "degraded"
