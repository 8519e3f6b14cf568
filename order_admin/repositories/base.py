from __future__ import annotations

from typing import AsyncContextManager, List, Optional, Protocol

from order_admin.models.admin import AuditEntry
from order_admin.models.order import Order, OrderFilters, StatusChange
from order_admin.models.payment import PaymentProof, ProofStatus


class OrderRepository(Protocol):
    """
    Storage boundary for orders, their status history and payment proofs.

    Every admin use case runs inside ``transaction(order_id)``; writes carry
    the version (or proof status) that was read so a concurrent change is
    detected instead of overwritten. Status history is insert-only.
    """

    def transaction(self, order_id: int) -> AsyncContextManager[None]:
        ...

    async def next_order_id(self) -> int:
        ...

    async def next_proof_id(self) -> int:
        ...

    async def count_orders_by_number_prefix(self, prefix: str) -> int:
        ...

    async def add_order(self, order: Order) -> Order:
        ...

    async def find_order_by_id(self, order_id: int) -> Optional[Order]:
        ...

    async def find_order_by_number(self, order_number: str) -> Optional[Order]:
        ...

    async def list_orders(self, filters: OrderFilters) -> List[Order]:
        ...

    async def save_order(
        self,
        order: Order,
        *,
        expected_version: int,
        event: Optional[StatusChange] = None,
    ) -> Order:
        ...

    async def add_proof(self, proof: PaymentProof) -> PaymentProof:
        ...

    async def find_proof_by_id(self, proof_id: int) -> Optional[PaymentProof]:
        ...

    async def find_proofs_by_order(self, order_id: int) -> List[PaymentProof]:
        ...

    async def save_proof(self, proof: PaymentProof, *, expected_status: ProofStatus) -> PaymentProof:
        ...


class AuditLogRepository(Protocol):
    async def log_action(self, entry: AuditEntry) -> AuditEntry:
        ...

    async def list_for_target(self, target_type: str, target_id: str) -> List[AuditEntry]:
        ...
