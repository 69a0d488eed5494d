import os
import sys
import uuid

# shopapi 설정이 로드되기 전에 인메모리 DB로 고정
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SES_FROM_EMAIL", "")
os.environ.setdefault("PAYMENT_EVENTS_SECRET", "")

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from shopapi.config import Settings
from shopapi.database.connection import SessionLocal, engine
from shopapi.models import (
    Base,
    Order,
    OrderItem,
    Product,
    ProductKey,
    Profile,
)


@pytest.fixture
def db():
    """테이블을 새로 만든 세션 (테스트마다 초기화)"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        SES_FROM_EMAIL="",
        PAYMENT_EVENTS_SECRET="test_events_secret",
        PAYMENT_INTEGRITY_SECRET="test_integrity_secret",
    )


def _make_profile(db, email=None, role="customer", full_name="Test Buyer") -> Profile:
    user_id = str(uuid.uuid4())
    profile = Profile(
        id=user_id,
        email=email or f"user-{user_id[:8]}@example.com",
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db.add(profile)
    db.commit()
    return profile


def _make_order(db, user_id, lines, status="pending", total_amount=None) -> Order:
    """lines: [(단가, 수량), ...] - 항목마다 상품을 하나씩 만든다"""
    order = Order(
        user_id=user_id,
        status=status,
        total_amount=total_amount
        if total_amount is not None
        else sum(price * qty for price, qty in lines),
    )
    db.add(order)
    db.flush()
    for index, (price, qty) in enumerate(lines):
        product = Product(name=f"License {index + 1}", price=price)
        db.add(product)
        db.flush()
        db.add(OrderItem(order_id=order.id, product_id=product.id, quantity=qty, price=price))
    db.commit()
    db.refresh(order)
    return order


def _add_keys(db, product_id, count, prefix="KEY"):
    for index in range(count):
        db.add(
            ProductKey(
                product_id=product_id,
                license_key=f"{prefix}-{product_id}-{index}-{uuid.uuid4().hex[:6]}",
            )
        )
    db.commit()


@pytest.fixture
def make_profile(db):
    return lambda **kwargs: _make_profile(db, **kwargs)


@pytest.fixture
def make_order(db):
    return lambda user_id, lines, **kwargs: _make_order(db, user_id, lines, **kwargs)


@pytest.fixture
def add_keys(db):
    return lambda product_id, count, **kwargs: _add_keys(db, product_id, count, **kwargs)
