from datetime import datetime, timedelta, timezone

import pytest

from order_admin.models.errors import (
    AlreadyPaidError,
    OrderCancelledError,
    ProofAlreadyReviewedError,
    TransitionError,
    UnsupportedPaymentMethodError,
    ValidationError,
)
from order_admin.models.order import OrderStatus, PaymentStatus
from order_admin.models.payment import ProofDecision, ProofStatus
from order_admin.workflows.payment_proof import PaymentProofWorkflow

from tests.conftest import make_order

AT = datetime(2025, 1, 14, 9, 30, tzinfo=timezone.utc)


def submit(order, proof_id=1, at=AT, **kwargs):
    kwargs.setdefault("file_url", "https://cdn.example.com/proofs/1.jpg")
    kwargs.setdefault("file_type", "image/jpeg")
    return PaymentProofWorkflow.submit_proof(order, proof_id=proof_id, user_id=42, at=at, **kwargs)


def test_submit_creates_pending_proof_without_touching_order():
    order = make_order()

    proof = submit(order, note="Chuyen khoan luc 9h")

    assert proof.status == ProofStatus.PENDING
    assert proof.order_id == order.order_id
    assert proof.created_at == AT
    assert proof.reviewed_by is None
    assert order.payment_status == PaymentStatus.PENDING


def test_submit_normalizes_file_type():
    proof = submit(make_order(), file_type=" IMAGE/PNG ")
    assert proof.file_type == "image/png"


@pytest.mark.parametrize("overrides,error", [
    ({"status": OrderStatus.CANCELLED}, OrderCancelledError),
    ({"payment_status": PaymentStatus.PAID}, AlreadyPaidError),
    ({"payment_method": "cod"}, UnsupportedPaymentMethodError),
])
def test_submit_preconditions(overrides, error):
    with pytest.raises(error):
        submit(make_order(**overrides))


def test_submit_rejects_unknown_file_type():
    with pytest.raises(ValidationError) as exc_info:
        submit(make_order(), file_type="application/zip")
    assert exc_info.value.field == "file_type"


def test_submit_requires_file_url():
    with pytest.raises(ValidationError):
        submit(make_order(), file_url="  ")


def test_accept_marks_order_paid():
    order = make_order()
    proof = submit(order)

    updated, reviewed = PaymentProofWorkflow.review_proof(
        order, proof, ProofDecision.ACCEPT, admin_id=7, at=AT
    )

    assert updated.payment_status == PaymentStatus.PAID
    assert updated.status == OrderStatus.PROCESSING
    assert reviewed.status == ProofStatus.ACCEPTED
    assert reviewed.reviewed_by == 7
    assert reviewed.reviewed_at == AT


def test_reject_marks_payment_failed_but_keeps_order_open():
    order = make_order()
    proof = submit(order)

    updated, reviewed = PaymentProofWorkflow.review_proof(order, proof, "reject", admin_id=7, at=AT)

    assert updated.payment_status == PaymentStatus.FAILED
    assert updated.status == OrderStatus.PROCESSING
    assert reviewed.status == ProofStatus.REJECTED


def test_second_review_is_refused():
    order = make_order()
    _, accepted = PaymentProofWorkflow.review_proof(order, submit(order), "accept", admin_id=7, at=AT)

    with pytest.raises(ProofAlreadyReviewedError):
        PaymentProofWorkflow.review_proof(order, accepted, "reject", admin_id=8, at=AT)

    assert accepted.status == ProofStatus.ACCEPTED
    assert accepted.reviewed_by == 7


def test_review_of_proof_from_another_order_is_refused():
    other = make_order(order_id=2002, order_number="ORD-2002")
    proof = submit(other)

    with pytest.raises(ValidationError):
        PaymentProofWorkflow.review_proof(make_order(), proof, "accept", admin_id=7)


def test_unknown_decision_is_a_validation_error():
    order = make_order()
    with pytest.raises(ValidationError):
        PaymentProofWorkflow.review_proof(order, submit(order), "maybe", admin_id=7)


def test_latest_pending_picks_newest_pending_proof():
    order = make_order()
    first = submit(order, proof_id=1, at=AT)
    second = submit(order, proof_id=2, at=AT + timedelta(minutes=5))
    _, reviewed = PaymentProofWorkflow.review_proof(
        order, submit(order, proof_id=3, at=AT + timedelta(minutes=10)), "reject", admin_id=7
    )

    assert PaymentProofWorkflow.latest_pending([first, second, reviewed]) == second
    assert PaymentProofWorkflow.latest_pending([reviewed]) is None
    assert PaymentProofWorkflow.latest_pending([]) is None


def test_accept_on_paid_order_is_refused():
    order = make_order(status=OrderStatus.SHIPPING, payment_status="paid")

    with pytest.raises(AlreadyPaidError):
        PaymentProofWorkflow.review_proof(order, submit(make_order()), "accept", admin_id=7)


def test_accept_on_refunded_return_is_refused():
    order = make_order(status=OrderStatus.RETURNED, payment_status="refunded")

    with pytest.raises(TransitionError):
        PaymentProofWorkflow.review_proof(order, submit(make_order()), "accept", admin_id=7)


def test_accept_on_cancelled_order_is_refused():
    order = make_order(status=OrderStatus.CANCELLED)

    with pytest.raises(TransitionError):
        PaymentProofWorkflow.review_proof(order, submit(make_order()), "accept", admin_id=7)


@pytest.mark.parametrize("overrides", [
    {"status": OrderStatus.SHIPPING, "payment_status": "paid"},
    {"status": OrderStatus.RETURNED, "payment_status": "refunded"},
    {"status": OrderStatus.CANCELLED},
])
def test_reject_leftover_proof_keeps_settled_payment(overrides):
    order = make_order(**overrides)

    updated, reviewed = PaymentProofWorkflow.review_proof(order, submit(make_order()), "reject", admin_id=7, at=AT)

    assert reviewed.status == ProofStatus.REJECTED
    assert updated.payment_status == order.payment_status
    assert updated.status == order.status
