from datetime import datetime, timezone
import itertools

import pytest

from order_admin.models.errors import TransitionError, ValidationError
from order_admin.models.order import OrderStatus, PaymentStatus
from order_admin.workflows.order_status import OrderStatusStateMachine

from tests.conftest import make_order

AT = datetime(2025, 1, 14, 10, 0, tzinfo=timezone.utc)

LISTED = [
    (OrderStatus.PROCESSING, OrderStatus.SHIPPING),
    (OrderStatus.SHIPPING, OrderStatus.DELIVERED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPING, OrderStatus.CANCELLED),
    (OrderStatus.DELIVERED, OrderStatus.RETURNED),
]

UNLISTED = [
    pair for pair in itertools.product(OrderStatus, OrderStatus)
    if pair not in LISTED
]


@pytest.mark.parametrize("from_status,to_status", LISTED)
def test_listed_transition_changes_status_and_appends_one_record(from_status, to_status):
    order = make_order(status=from_status, payment_status=PaymentStatus.PAID)

    updated, change = OrderStatusStateMachine.transition(
        order, to_status, admin_id=7, note="damaged", at=AT
    )

    assert updated.status == to_status
    assert len(updated.status_history) == 1
    assert updated.status_history[0] == change
    assert change.old_status == from_status
    assert change.new_status == to_status
    assert change.actor_admin_id == 7
    assert change.at == AT
    # the input order is never touched
    assert order.status == from_status
    assert order.status_history == ()


@pytest.mark.parametrize("from_status,to_status", UNLISTED)
def test_unlisted_transition_is_rejected_and_order_unchanged(from_status, to_status):
    order = make_order(status=from_status, payment_status=PaymentStatus.PAID)
    before = order.model_dump_json()

    with pytest.raises(TransitionError) as exc_info:
        OrderStatusStateMachine.transition(order, to_status, admin_id=7, note="reason", at=AT)

    assert exc_info.value.current == from_status
    assert exc_info.value.attempted == to_status
    assert order.model_dump_json() == before


@pytest.mark.parametrize("status", [OrderStatus.RETURNED, OrderStatus.CANCELLED])
def test_terminal_statuses_have_no_targets(status):
    order = make_order(status=status)
    assert OrderStatusStateMachine.allowed_targets(order) == frozenset()
    assert order.is_terminal


def test_confirm_unpaid_bank_transfer_fails():
    order = make_order(payment_method="bank_transfer", payment_status="pending")

    with pytest.raises(TransitionError) as exc_info:
        OrderStatusStateMachine.confirm(order, admin_id=7, at=AT)

    assert exc_info.value.details == {"from": "Processing", "to": "Shipping"}
    assert "payment is verified" in exc_info.value.message
    assert order.status == OrderStatus.PROCESSING


def test_confirm_unpaid_cod_succeeds():
    order = make_order(payment_method="cod", payment_status="pending")

    updated, _ = OrderStatusStateMachine.confirm(order, admin_id=7, at=AT)

    assert updated.status == OrderStatus.SHIPPING
    assert updated.payment_status == PaymentStatus.PENDING


def test_confirm_failed_payment_is_still_blocked():
    order = make_order(payment_method="momo", payment_status="failed")
    assert not OrderStatusStateMachine.can_transition(order, OrderStatus.SHIPPING)
    assert OrderStatusStateMachine.can_transition(order, OrderStatus.CANCELLED)


def test_return_requires_reason():
    order = make_order(status=OrderStatus.DELIVERED, payment_status="paid")

    with pytest.raises(ValidationError):
        OrderStatusStateMachine.process_return(order, "   ", admin_id=7, at=AT)


def test_cancel_records_empty_reason():
    order = make_order()

    updated, change = OrderStatusStateMachine.cancel(order, None, admin_id=7, at=AT)

    assert updated.status == OrderStatus.CANCELLED
    assert change.note == ""


def test_return_of_paid_order_marks_payment_refunded():
    order = make_order(status=OrderStatus.DELIVERED, payment_status="paid")

    updated, _ = OrderStatusStateMachine.process_return(order, "damaged", admin_id=7, at=AT)

    assert updated.status == OrderStatus.RETURNED
    assert updated.payment_status == PaymentStatus.REFUNDED


def test_return_of_unpaid_cod_order_keeps_payment_status():
    order = make_order(status=OrderStatus.DELIVERED, payment_method="cod")

    updated, _ = OrderStatusStateMachine.process_return(order, "wrong size", admin_id=7, at=AT)

    assert updated.payment_status == PaymentStatus.PENDING


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        OrderStatusStateMachine.transition(make_order(), "Lost", admin_id=7)


def test_totals_hold_across_every_transition():
    order = make_order(subtotal=500000, shipping_fee=30000, discount=50000, payment_status="paid")
    assert order.total_amount == 480000

    for step in (OrderStatus.SHIPPING, OrderStatus.DELIVERED, OrderStatus.RETURNED):
        order, _ = OrderStatusStateMachine.transition(order, step, admin_id=7, note="damaged", at=AT)
        assert order.total_amount == order.subtotal - order.discount + order.shipping_fee

    assert [change.new_status for change in order.status_history] == [
        OrderStatus.SHIPPING,
        OrderStatus.DELIVERED,
        OrderStatus.RETURNED,
    ]


def test_mark_delivered_after_shipping():
    order = make_order(status=OrderStatus.SHIPPING, payment_method="cod")

    updated, change = OrderStatusStateMachine.mark_delivered(order, admin_id=7, note="signed by customer", at=AT)

    assert updated.status == OrderStatus.DELIVERED
    assert change.note == "signed by customer"
    with pytest.raises(TransitionError):
        OrderStatusStateMachine.mark_delivered(make_order(), admin_id=7)
