from datetime import datetime, timezone

import pytest

from order_admin.models.errors import ValidationError
from order_admin.models.order import OrderStatus, PaymentStatus
from order_admin.models.payment import BankTransaction, ProofStatus, VerificationOutcome

from tests.conftest import make_order

ORDER_NUMBER = "ORD20250114001"


def transfer(**overrides) -> BankTransaction:
    data = {
        "transaction_id": "93011",
        "amount": 230000,
        "description": f"Thanh toan hoa don {ORDER_NUMBER}",
        "transaction_date": datetime(2025, 1, 14, 9, 15, tzinfo=timezone.utc),
        "account_number": "0123456789",
        "bank_code": "VCB",
    }
    data.update(overrides)
    return BankTransaction(**data)


@pytest.fixture
async def order(repository):
    return await repository.add_order(make_order(order_number=ORDER_NUMBER))


async def test_matching_transfer_marks_order_paid(service, repository, order, clock):
    result = await service.verify_transfer(transfer())

    assert result.verified
    assert result.order_number == ORDER_NUMBER
    stored = await repository.find_order_by_id(order.order_id)
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.status == OrderStatus.PROCESSING

    proofs = await repository.find_proofs_by_order(order.order_id)
    assert len(proofs) == 1
    assert proofs[0] == result.proof
    assert proofs[0].status == ProofStatus.ACCEPTED
    assert proofs[0].file_url == "sepay:transaction/93011"
    assert proofs[0].reviewed_at == clock()

    status = await service.check_payment_status(ORDER_NUMBER)
    assert status == {"order_number": ORDER_NUMBER, "paid": True, "payment_status": "paid"}


async def test_amount_within_tolerance_is_accepted(service, order):
    result = await service.verify_transfer(transfer(amount=229500))
    assert result.outcome == VerificationOutcome.VERIFIED


async def test_wrong_amount_leaves_order_unpaid(service, repository, order):
    result = await service.verify_transfer(transfer(amount=200000))

    assert result.outcome == VerificationOutcome.AMOUNT_MISMATCH
    assert (await repository.find_order_by_id(order.order_id)).payment_status == PaymentStatus.PENDING
    assert await repository.find_proofs_by_order(order.order_id) == []


async def test_unknown_order(service, order):
    result = await service.verify_transfer(transfer(description="Thanh toan hoa don ORD20991231999"))

    assert result.outcome == VerificationOutcome.ORDER_NOT_FOUND
    assert result.order_number == "ORD20991231999"


async def test_already_paid_order_is_left_alone(service, repository):
    paid = await repository.add_order(make_order(order_number=ORDER_NUMBER, payment_status="paid"))

    result = await service.verify_transfer(transfer())

    assert result.outcome == VerificationOutcome.ALREADY_PAID
    assert (await repository.find_order_by_id(paid.order_id)).version == 0
    assert await repository.find_proofs_by_order(paid.order_id) == []


async def test_repeated_notification_is_applied_once(service, repository, order):
    first = await service.verify_transfer(transfer())
    second = await service.verify_transfer(transfer())

    assert first.verified
    assert second.outcome == VerificationOutcome.ALREADY_PAID
    assert len(await repository.find_proofs_by_order(order.order_id)) == 1


async def test_closed_order_is_not_marked_paid(service, repository):
    await repository.add_order(make_order(order_number=ORDER_NUMBER, status=OrderStatus.CANCELLED))

    result = await service.verify_transfer(transfer())

    assert result.outcome == VerificationOutcome.ORDER_CLOSED


async def test_transfer_to_another_account_is_ignored(service, order):
    result = await service.verify_transfer(transfer(account_number="9999999999"))
    assert result.outcome == VerificationOutcome.INVALID_TRANSACTION


async def test_memo_without_order_number(service, order):
    result = await service.verify_transfer(transfer(description="chuyen tien"))
    assert result.outcome == VerificationOutcome.NO_ORDER_NUMBER


async def test_check_payment_status_before_transfer(service, order):
    status = await service.check_payment_status(ORDER_NUMBER)
    assert status["paid"] is False


def test_order_number_is_read_from_memo_case_insensitively():
    assert transfer(description="ck ord20250114001 cam on").order_number() == ORDER_NUMBER
    assert transfer(description="ORD-1001").order_number() is None


def test_from_sepay_maps_webhook_fields():
    transaction = BankTransaction.from_sepay({
        "id": 93011,
        "amount_in": 230000,
        "transaction_content": f"Thanh toan hoa don {ORDER_NUMBER}",
        "transaction_date": "2025-01-14T09:15:00",
        "account_number": "0123456789",
        "code": "VCB",
        "reference_number": "FT25014123",
        "bank_brand_name": "Vietcombank",
    })

    assert transaction.transaction_id == "93011"
    assert transaction.amount == 230000
    assert transaction.transaction_date == datetime(2025, 1, 14, 9, 15, tzinfo=timezone.utc)
    assert transaction.order_number() == ORDER_NUMBER
    assert transaction.reference_number == "FT25014123"


def test_from_sepay_requires_transaction_id():
    with pytest.raises(ValidationError):
        BankTransaction.from_sepay({"amount_in": 1000, "transaction_date": "2025-01-14T09:15:00"})
