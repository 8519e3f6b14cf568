import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple

from order_admin.models import parse_model
from order_admin.models.errors import (
    AlreadyPaidError,
    OrderCancelledError,
    ProofAlreadyReviewedError,
    TransitionError,
    UnsupportedPaymentMethodError,
    ValidationError,
)
from order_admin.models.order import Order, OrderStatus, PaymentStatus, utcnow
from order_admin.models.payment import PaymentProof, ProofDecision, ProofStatus

logger = logging.getLogger(__name__)


def _coerce_decision(value) -> ProofDecision:
    try:
        return ProofDecision(value)
    except ValueError:
        raise ValidationError(f"Unknown proof decision: {value}", field="decision")


class PaymentProofWorkflow:
    """Submission and one-shot review of payment proofs."""

    @staticmethod
    def submit_proof(
        order: Order,
        *,
        proof_id: int,
        user_id: int,
        file_url: str,
        file_type: Optional[str] = None,
        note: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> PaymentProof:
        """Create a pending proof for ``order``. The order itself is not changed."""
        if order.status == OrderStatus.CANCELLED:
            raise OrderCancelledError(order.order_number)
        if order.payment_status == PaymentStatus.PAID:
            raise AlreadyPaidError(order.order_number)
        if not order.supports_qr_payment:
            raise UnsupportedPaymentMethodError(order.payment_method)

        return parse_model(PaymentProof, {
            "proof_id": proof_id,
            "order_id": order.order_id,
            "user_id": user_id,
            "file_url": file_url,
            "file_type": file_type,
            "note": note,
            "status": ProofStatus.PENDING,
            "created_at": at or utcnow(),
        })

    @staticmethod
    def review_proof(
        order: Order,
        proof: PaymentProof,
        decision,
        *,
        admin_id: int,
        at: Optional[datetime] = None,
    ) -> Tuple[Order, PaymentProof]:
        decision = _coerce_decision(decision)
        if proof.order_id != order.order_id:
            raise ValidationError(
                f"Payment proof {proof.proof_id} does not belong to order {order.order_number}",
                field="proof_id",
            )
        if not proof.is_pending:
            raise ProofAlreadyReviewedError(proof.proof_id, proof.status)

        # once the payment is settled or the order is closed, a leftover proof
        # may only be cleared; it never moves the order's payment status
        settled = order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED) or order.is_terminal

        if decision == ProofDecision.ACCEPT:
            if order.payment_status == PaymentStatus.PAID:
                raise AlreadyPaidError(order.order_number)
            if settled:
                raise TransitionError(
                    order.payment_status,
                    PaymentStatus.PAID,
                    f"Order {order.order_number} is {order.status.value} with payment "
                    f"{order.payment_status.value}; a proof can no longer confirm it",
                )
            proof_status, payment_status = ProofStatus.ACCEPTED, PaymentStatus.PAID
        else:
            # a rejected proof never cancels the order by itself
            proof_status = ProofStatus.REJECTED
            payment_status = order.payment_status if settled else PaymentStatus.FAILED

        reviewed = proof.model_copy(update={
            "status": proof_status,
            "reviewed_by": admin_id,
            "reviewed_at": at or utcnow(),
        })
        updated_order = order.model_copy(update={"payment_status": payment_status})
        logger.debug(f"Payment proof {proof.proof_id} {proof_status.value} for order {order.order_number}")
        return updated_order, reviewed

    @staticmethod
    def latest_pending(proofs: Iterable[PaymentProof]) -> Optional[PaymentProof]:
        pending = [proof for proof in proofs if proof.is_pending]
        if not pending:
            return None
        return max(pending, key=lambda proof: (proof.created_at, proof.proof_id))
