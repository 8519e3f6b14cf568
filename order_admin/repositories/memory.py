import asyncio
import itertools
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from order_admin.models.admin import AuditEntry
from order_admin.models.errors import NotFoundError, ProofAlreadyReviewedError, TransitionError, ValidationError
from order_admin.models.order import Order, OrderFilters, StatusChange
from order_admin.models.payment import PaymentProof, ProofStatus

logger = logging.getLogger(__name__)


class InMemoryOrderRepository:
    """
    Process-local order store.

    Status history rows live in their own insert-only list per order and are
    attached to the order on every read, so nothing held in memory by a caller
    can rewrite the audit trail.
    """

    def __init__(self):
        self._orders: Dict[int, Order] = {}
        self._history: Dict[int, List[StatusChange]] = defaultdict(list)
        self._proofs: Dict[int, PaymentProof] = {}
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._order_ids = itertools.count(1)
        self._proof_ids = itertools.count(1)

    @asynccontextmanager
    async def transaction(self, order_id: int):
        # locks exist only for stored orders, so unknown ids never grow the map
        if order_id not in self._orders:
            raise NotFoundError("Order", order_id)
        async with self._locks[order_id]:
            yield

    async def next_order_id(self) -> int:
        order_id = next(self._order_ids)
        while order_id in self._orders:
            order_id = next(self._order_ids)
        return order_id

    async def next_proof_id(self) -> int:
        proof_id = next(self._proof_ids)
        while proof_id in self._proofs:
            proof_id = next(self._proof_ids)
        return proof_id

    async def count_orders_by_number_prefix(self, prefix: str) -> int:
        return sum(1 for order in self._orders.values() if order.order_number.startswith(prefix))

    async def add_order(self, order: Order) -> Order:
        if order.order_id in self._orders:
            raise ValidationError(f"Order {order.order_id} already exists", field="order_id")
        if any(existing.order_number == order.order_number for existing in self._orders.values()):
            raise ValidationError(f"Order number {order.order_number} already exists", field="order_number")
        self._orders[order.order_id] = order.model_copy(update={"status_history": ()})
        self._history[order.order_id] = list(order.status_history)
        return self._attach_history(self._orders[order.order_id])

    async def find_order_by_id(self, order_id: int) -> Optional[Order]:
        order = self._orders.get(order_id)
        return self._attach_history(order) if order else None

    async def find_order_by_number(self, order_number: str) -> Optional[Order]:
        for order in self._orders.values():
            if order.order_number == order_number:
                return self._attach_history(order)
        return None

    async def list_orders(self, filters: OrderFilters) -> List[Order]:
        matching = [order for order in self._orders.values() if filters.matches(order)]
        matching.sort(key=lambda order: order.ordered_at, reverse=True)
        page = matching[filters.offset:filters.offset + filters.limit]
        return [self._attach_history(order) for order in page]

    async def save_order(
        self,
        order: Order,
        *,
        expected_version: int,
        event: Optional[StatusChange] = None,
    ) -> Order:
        stored = self._orders.get(order.order_id)
        if stored is None:
            raise NotFoundError("Order", order.order_id)
        if stored.version != expected_version:
            logger.warning(
                f"Order {stored.order_number} changed concurrently "
                f"(expected version {expected_version}, found {stored.version})"
            )
            raise TransitionError(
                stored.status,
                order.status,
                f"Order {stored.order_number} was modified by another request; reload and retry",
            )
        if event is not None:
            if event.order_id != order.order_id or event.old_status != stored.status:
                raise TransitionError(stored.status, event.new_status)
            self._history[order.order_id].append(event)

        self._orders[order.order_id] = order.model_copy(
            update={"version": expected_version + 1, "status_history": ()}
        )
        return self._attach_history(self._orders[order.order_id])

    async def add_proof(self, proof: PaymentProof) -> PaymentProof:
        if proof.order_id not in self._orders:
            raise NotFoundError("Order", proof.order_id)
        if proof.proof_id in self._proofs:
            raise ValidationError(f"Payment proof {proof.proof_id} already exists", field="proof_id")
        self._proofs[proof.proof_id] = proof
        return proof

    async def find_proof_by_id(self, proof_id: int) -> Optional[PaymentProof]:
        return self._proofs.get(proof_id)

    async def find_proofs_by_order(self, order_id: int) -> List[PaymentProof]:
        proofs = [proof for proof in self._proofs.values() if proof.order_id == order_id]
        return sorted(proofs, key=lambda proof: (proof.created_at, proof.proof_id))

    async def save_proof(self, proof: PaymentProof, *, expected_status: ProofStatus) -> PaymentProof:
        stored = self._proofs.get(proof.proof_id)
        if stored is None:
            raise NotFoundError("Payment proof", proof.proof_id)
        if stored.status != expected_status:
            raise ProofAlreadyReviewedError(stored.proof_id, stored.status)
        self._proofs[proof.proof_id] = proof
        return proof

    def _attach_history(self, order: Order) -> Order:
        return order.model_copy(update={"status_history": tuple(self._history[order.order_id])})


class InMemoryAuditLogRepository:
    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._ids = itertools.count(1)

    async def log_action(self, entry: AuditEntry) -> AuditEntry:
        stored = entry.model_copy(update={"log_id": next(self._ids)})
        self._entries.append(stored)
        return stored

    async def list_for_target(self, target_type: str, target_id: str) -> List[AuditEntry]:
        return [
            entry for entry in self._entries
            if entry.target_type == target_type and entry.target_id == target_id
        ]
