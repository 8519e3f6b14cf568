"""Shared pytest fixtures for the order admin tests."""

from datetime import datetime, timedelta, timezone

import pytest

from order_admin.models.admin import AdminPrincipal
from order_admin.models.order import Order
from order_admin.models.payment import BankAccount
from order_admin.repositories.memory import InMemoryOrderRepository
from order_admin.services.admin_orders import AdminOrderService
from order_admin.services.checkout import CheckoutService

ORDERED_AT = datetime(2025, 1, 14, 8, 0, tzinfo=timezone.utc)
ADMIN = AdminPrincipal(admin_id=7, email="admin@example.com")


def make_order(**overrides) -> Order:
    data = {
        "order_id": 1001,
        "order_number": "ORD-1001",
        "user_id": 42,
        "customer": {
            "name": "Nguyen Van A",
            "email": "a@example.com",
            "phone": "0901234567",
            "address": "12 Le Loi",
            "city": "Ho Chi Minh",
        },
        "items": [
            {"product_id": 1, "product_name": "Ao thun", "quantity": 2, "unit_price": 115000},
        ],
        "subtotal": 230000,
        "shipping_fee": 0,
        "discount": 0,
        "payment_method": "bank_transfer",
        "ordered_at": ORDERED_AT,
    }
    data.update(overrides)
    return Order.model_validate(data)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingAuditDispatcher:
    def __init__(self, fail: bool = False):
        self.entries = []
        self.fail = fail

    async def dispatch(self, entry) -> None:
        if self.fail:
            raise ConnectionError("audit store unavailable")
        self.entries.append(entry)


@pytest.fixture
def bank_account():
    return BankAccount(
        bank_id="VCB",
        bank_bin="970436",
        account_no="0123456789",
        account_name="CONG TY TNHH STOREFRONT",
    )


@pytest.fixture
def clock():
    return FixedClock(ORDERED_AT + timedelta(hours=1))


@pytest.fixture
def repository():
    return InMemoryOrderRepository()


@pytest.fixture
def audit():
    return RecordingAuditDispatcher()


@pytest.fixture
def service(repository, audit, bank_account, clock):
    return AdminOrderService(repository, audit, bank_account=bank_account, clock=clock)


@pytest.fixture
def checkout(repository, clock):
    return CheckoutService(repository, clock=clock)


@pytest.fixture
def admin():
    return ADMIN
