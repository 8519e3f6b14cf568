from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Callable, List, Optional, Tuple
import logging

from order_admin.models.admin import AdminAction, AdminPrincipal, AuditEntry
from order_admin.models.errors import (
    AuthorizationError,
    NotFoundError,
    OrderDomainError,
    TransitionError,
    ValidationError,
)
from order_admin.models.order import Order, OrderFilters, OrderStatus, PaymentStatus, utcnow
from order_admin.models.payment import (
    BankAccount,
    BankTransaction,
    PaymentProof,
    PaymentQR,
    ProofDecision,
    ProofStatus,
    TransferVerification,
    VerificationOutcome,
)
from order_admin.repositories.base import AuditLogRepository, OrderRepository
from order_admin.services.audit import AuditDispatcher
from order_admin.services.payment_qr import DEFAULT_TEMPLATE, PaymentQRGenerator
from order_admin.services.urgency import OrderUrgencyCalculator, TimeRemaining
from order_admin.workflows.order_status import OrderStatusStateMachine
from order_admin.workflows.payment_proof import PaymentProofWorkflow

logger = logging.getLogger(__name__)

_DECISION_FOR_PAYMENT_STATUS = {
    PaymentStatus.PAID: ProofDecision.ACCEPT,
    PaymentStatus.FAILED: ProofDecision.REJECT,
}


class OrderView(BaseModel):
    """An order as shown to admins: the aggregate plus derived confirmation urgency."""

    model_config = ConfigDict(frozen=True)

    order: Order
    urgency: Optional[TimeRemaining] = None
    payment_proofs: Tuple[PaymentProof, ...] = ()


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value}", field=field)


class AdminOrderService:
    """
    Admin use cases over orders and payment proofs.

    Each mutating call runs load -> guarded change -> save inside the
    repository's per-order transaction, then records an audit entry. Domain
    errors propagate unchanged to the caller; nothing is retried.
    """

    def __init__(
        self,
        repository: OrderRepository,
        audit: AuditDispatcher,
        *,
        bank_account: Optional[BankAccount] = None,
        qr_template: str = DEFAULT_TEMPLATE,
        clock: Callable[[], datetime] = utcnow,
        audit_log: Optional[AuditLogRepository] = None,
    ):
        self._repository = repository
        self._audit = audit
        self._bank_account = bank_account
        self._qr_template = qr_template
        self._clock = clock
        self._audit_log = audit_log

    # Queries

    async def list_orders(self, filters: Optional[OrderFilters] = None, *, now: Optional[datetime] = None) -> List[OrderView]:
        filters = filters or OrderFilters()
        now = now or self._clock()
        orders = await self._repository.list_orders(filters)
        ranked = OrderUrgencyCalculator.sort_by_urgency(orders, now)
        return [self._view(order, now) for order in ranked]

    async def get_order(self, order_id: int, *, now: Optional[datetime] = None) -> OrderView:
        order = await self._load(order_id)
        proofs = await self._repository.find_proofs_by_order(order_id)
        return self._view(order, now or self._clock(), proofs)

    # Status changes

    async def update_status(self, order_id: int, new_status, note: Optional[str], admin: Optional[AdminPrincipal]) -> Order:
        target = _coerce(OrderStatus, new_status, "status")
        return await self._transition(order_id, target, note, admin, AdminAction.UPDATE_ORDER_STATUS)

    async def cancel_order(self, order_id: int, reason: Optional[str], admin: Optional[AdminPrincipal]) -> Order:
        return await self._transition(order_id, OrderStatus.CANCELLED, reason, admin, AdminAction.CANCEL_ORDER)

    async def process_refund(self, order_id: int, reason: Optional[str], admin: Optional[AdminPrincipal]) -> Order:
        return await self._transition(order_id, OrderStatus.RETURNED, reason, admin, AdminAction.PROCESS_REFUND)

    async def _transition(self, order_id, target, note, admin, action) -> Order:
        admin = self._require_admin(admin)
        async with self._repository.transaction(order_id):
            order = await self._load(order_id)
            try:
                updated, change = OrderStatusStateMachine.transition(
                    order, target, admin_id=admin.admin_id, note=note, at=self._clock()
                )
            except OrderDomainError as e:
                logger.warning(f"Admin {admin.admin_id} status change on order {order.order_number} rejected: {e}")
                raise
            saved = await self._repository.save_order(updated, expected_version=order.version, event=change)

        logger.info(
            f"Order {saved.order_number} status updated from {change.old_status.value} "
            f"to {change.new_status.value} by admin {admin.admin_id}"
        )
        await self._record(admin, action, saved, {
            "old_status": change.old_status.value,
            "new_status": change.new_status.value,
            "note": change.note,
        })
        return saved

    # Payment status

    async def update_payment_status(
        self,
        order_id: int,
        payment_status,
        admin: Optional[AdminPrincipal],
        proof_id: Optional[int] = None,
        proof_decision=None,
    ) -> Order:
        """
        Change an order's payment status.

        With a proof (``proof_id``, or a ``proof_decision`` which then targets
        the newest pending proof) the change goes through the proof review:
        accept -> paid, reject -> failed. Without one it is a manual override,
        where ``refunded`` is only accepted for a paid order that has been
        returned or cancelled.
        """
        admin = self._require_admin(admin)
        status = _coerce(PaymentStatus, payment_status, "payment_status")
        decision = _coerce(ProofDecision, proof_decision, "proof_decision") if proof_decision is not None else None

        if proof_id is not None or decision is not None:
            return await self._review_proof(order_id, status, admin, proof_id, decision)

        async with self._repository.transaction(order_id):
            order = await self._load(order_id)
            self._check_manual_payment_change(order, status)
            updated = order.model_copy(update={"payment_status": status})
            saved = await self._repository.save_order(updated, expected_version=order.version)

        logger.info(
            f"Order {saved.order_number} payment status updated from {order.payment_status.value} "
            f"to {status.value} by admin {admin.admin_id}"
        )
        await self._record(admin, AdminAction.UPDATE_PAYMENT_STATUS, saved, {
            "old_payment_status": order.payment_status.value,
            "payment_status": status.value,
        })
        return saved

    async def _review_proof(self, order_id, status, admin, proof_id, decision) -> Order:
        expected = _DECISION_FOR_PAYMENT_STATUS.get(status)
        if expected is None:
            raise ValidationError(
                f"A payment proof review can only set the payment status to paid or failed, not {status.value}",
                field="payment_status",
            )
        if decision is None:
            decision = expected
        elif decision != expected:
            raise ValidationError(
                f"Proof decision {decision.value} does not match payment status {status.value}",
                field="proof_status",
            )

        async with self._repository.transaction(order_id):
            order = await self._load(order_id)
            if proof_id is not None:
                proof = await self._repository.find_proof_by_id(proof_id)
                if proof is None:
                    raise NotFoundError("Payment proof", proof_id)
            else:
                proof = PaymentProofWorkflow.latest_pending(await self._repository.find_proofs_by_order(order_id))
                if proof is None:
                    raise NotFoundError("Pending payment proof for order", order.order_number)
            try:
                updated, reviewed = PaymentProofWorkflow.review_proof(
                    order, proof, decision, admin_id=admin.admin_id, at=self._clock()
                )
            except OrderDomainError as e:
                logger.warning(f"Admin {admin.admin_id} review of proof {proof.proof_id} rejected: {e}")
                raise
            if updated.payment_status != order.payment_status:
                saved = await self._repository.save_order(updated, expected_version=order.version)
            else:
                saved = order
            await self._repository.save_proof(reviewed, expected_status=ProofStatus.PENDING)

        logger.info(
            f"Payment proof {reviewed.proof_id} {reviewed.status.value} for order {saved.order_number}; "
            f"payment status {saved.payment_status.value} (admin {admin.admin_id})"
        )
        await self._record(admin, AdminAction.UPDATE_PAYMENT_STATUS, saved, {
            "old_payment_status": order.payment_status.value,
            "payment_status": saved.payment_status.value,
            "proof_id": reviewed.proof_id,
            "proof_status": reviewed.status.value,
        })
        return saved

    @staticmethod
    def _check_manual_payment_change(order: Order, status: PaymentStatus) -> None:
        current = order.payment_status
        if status == PaymentStatus.PENDING:
            raise ValidationError("Payment status cannot be reset to pending", field="payment_status")
        if current == status or current == PaymentStatus.REFUNDED:
            raise TransitionError(current, status)
        if status == PaymentStatus.REFUNDED:
            if current != PaymentStatus.PAID or order.status not in (OrderStatus.RETURNED, OrderStatus.CANCELLED):
                raise TransitionError(
                    current,
                    status,
                    f"Order {order.order_number} can only be refunded once paid and returned or cancelled",
                )

    # Customer-facing payment operations

    async def get_payment_qr(self, order_id: int) -> PaymentQR:
        return self._generate_qr(await self._load(order_id))

    async def get_payment_qr_by_number(self, order_number: str) -> PaymentQR:
        order = await self._repository.find_order_by_number(order_number)
        if order is None:
            raise NotFoundError("Order", order_number)
        return self._generate_qr(order)

    async def submit_payment_proof(
        self,
        order_id: int,
        user_id: int,
        file_url: str,
        file_type: Optional[str] = None,
        note: Optional[str] = None,
    ) -> PaymentProof:
        async with self._repository.transaction(order_id):
            order = await self._load(order_id)
            proof = PaymentProofWorkflow.submit_proof(
                order,
                proof_id=await self._repository.next_proof_id(),
                user_id=user_id,
                file_url=file_url,
                file_type=file_type,
                note=note,
                at=self._clock(),
            )
            stored = await self._repository.add_proof(proof)
        logger.info(f"Payment proof {stored.proof_id} submitted for order {order.order_number} by user {user_id}")
        return stored

    async def list_payment_proofs(self, order_id: int) -> List[PaymentProof]:
        await self._load(order_id)
        return await self._repository.find_proofs_by_order(order_id)

    async def check_payment_status(self, order_number: str) -> dict:
        """Polling endpoint for the payment page; reports what has been verified so far."""
        order = await self._repository.find_order_by_number(order_number)
        if order is None:
            raise NotFoundError("Order", order_number)
        return {
            "order_number": order.order_number,
            "paid": order.payment_status == PaymentStatus.PAID,
            "payment_status": order.payment_status.value,
        }

    # Automatic payment verification

    async def verify_transfer(self, transaction: BankTransaction) -> TransferVerification:
        """
        Match an incoming bank transfer to an order and mark it paid.

        The memo must quote the order number and the amount must be within
        the tolerance of the order total. Transfers that do not match are
        reported, not raised: the bank feed only needs an acknowledgement.
        A verified transfer also leaves an accepted payment proof behind.
        """
        def outcome(result, order_number=None, proof=None):
            return TransferVerification(
                outcome=result,
                transaction_id=transaction.transaction_id,
                order_number=order_number,
                proof=proof,
            )

        if self._bank_account is None or not transaction.is_valid_for(self._bank_account.account_no):
            logger.warning(f"Ignoring transaction {transaction.transaction_id} for account {transaction.account_number}")
            return outcome(VerificationOutcome.INVALID_TRANSACTION)

        order_number = transaction.order_number()
        if order_number is None:
            logger.warning(f"No order number in transaction {transaction.transaction_id}: {transaction.description!r}")
            return outcome(VerificationOutcome.NO_ORDER_NUMBER)

        found = await self._repository.find_order_by_number(order_number)
        if found is None:
            logger.warning(f"Transaction {transaction.transaction_id} names unknown order {order_number}")
            return outcome(VerificationOutcome.ORDER_NOT_FOUND, order_number)

        async with self._repository.transaction(found.order_id):
            order = await self._load(found.order_id)
            if order.payment_status == PaymentStatus.PAID:
                logger.info(f"Order {order_number} already paid; transaction {transaction.transaction_id} ignored")
                return outcome(VerificationOutcome.ALREADY_PAID, order_number)
            if order.is_terminal or order.payment_status == PaymentStatus.REFUNDED:
                logger.warning(
                    f"Transaction {transaction.transaction_id} for closed order {order_number} "
                    f"({order.status.value}, {order.payment_status.value}) needs manual handling"
                )
                return outcome(VerificationOutcome.ORDER_CLOSED, order_number)
            if not transaction.matches_amount(order.total_amount):
                logger.warning(
                    f"Amount mismatch for order {order_number}: expected {order.total_amount}, "
                    f"received {transaction.amount}"
                )
                return outcome(VerificationOutcome.AMOUNT_MISMATCH, order_number)

            now = self._clock()
            saved = await self._repository.save_order(
                order.model_copy(update={"payment_status": PaymentStatus.PAID}),
                expected_version=order.version,
            )
            proof = await self._repository.add_proof(PaymentProof(
                proof_id=await self._repository.next_proof_id(),
                order_id=order.order_id,
                user_id=order.user_id,
                file_url=f"sepay:transaction/{transaction.transaction_id}",
                note=f"Tu dong xac nhan tu webhook Sepay - Giao dich #{transaction.transaction_id}",
                status=ProofStatus.ACCEPTED,
                reviewed_at=now,
                created_at=now,
            ))

        logger.info(f"Payment verified for order {saved.order_number}: {transaction.amount} VND")
        return outcome(VerificationOutcome.VERIFIED, order_number, proof)

    # Audit trail

    async def get_audit_trail(self, order_id: int, admin: Optional[AdminPrincipal]) -> List[AuditEntry]:
        self._require_admin(admin)
        order = await self._load(order_id)
        if self._audit_log is None:
            raise ValidationError("No audit store is configured", field="audit_log")
        entries = await self._audit_log.list_for_target("orders", str(order.order_id))
        return sorted(entries, key=lambda entry: (entry.at, entry.log_id or 0))

    # Helpers

    def _generate_qr(self, order: Order) -> PaymentQR:
        if self._bank_account is None:
            raise ValidationError("No receiving bank account is configured", field="bank_account")
        return PaymentQRGenerator.generate_for_order(self._bank_account, order, self._qr_template)

    async def _load(self, order_id: int) -> Order:
        order = await self._repository.find_order_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    @staticmethod
    def _require_admin(admin: Optional[AdminPrincipal]) -> AdminPrincipal:
        if admin is None:
            raise AuthorizationError()
        return admin

    @staticmethod
    def _view(order: Order, now: datetime, proofs=()) -> OrderView:
        urgency = None
        if order.status == OrderStatus.PROCESSING:
            urgency = OrderUrgencyCalculator.time_remaining(order.ordered_at, now)
        return OrderView(order=order, urgency=urgency, payment_proofs=tuple(proofs))

    async def _record(self, admin: AdminPrincipal, action: AdminAction, order: Order, payload: dict) -> None:
        entry = AuditEntry(
            admin_id=admin.admin_id,
            action=action,
            target_id=str(order.order_id),
            payload={"order_number": order.order_number, **payload},
            at=self._clock(),
        )
        try:
            await self._audit.dispatch(entry)
        except Exception:
            # The admin action is already committed; a lost audit write must not undo it
            logger.exception(f"Failed to record {action.value} for order {order.order_number}")
