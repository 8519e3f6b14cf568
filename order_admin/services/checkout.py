from pydantic import BaseModel, Field
from datetime import datetime
from typing import Callable, List, Optional
import logging

from order_admin.models import parse_model
from order_admin.models.order import (
    CustomerSnapshot,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    utcnow,
)
from order_admin.repositories.base import OrderRepository

logger = logging.getLogger(__name__)


class OrderItemDraft(BaseModel):
    product_id: int
    product_name: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: int = Field(..., ge=0)


class OrderDraft(BaseModel):
    """What checkout hands over once the cart has been priced."""

    user_id: int = Field(..., gt=0)
    customer: CustomerSnapshot
    items: List[OrderItemDraft] = Field(..., min_length=1)
    shipping_fee: int = Field(0, ge=0)
    discount: int = Field(0, ge=0)
    payment_method: PaymentMethod
    notes: Optional[str] = None


class CheckoutService:
    def __init__(self, repository: OrderRepository, *, clock: Callable[[], datetime] = utcnow):
        self._repository = repository
        self._clock = clock

    async def place_order(self, draft) -> Order:
        if not isinstance(draft, OrderDraft):
            draft = parse_model(OrderDraft, draft)

        now = self._clock()
        items = [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.quantity * item.unit_price,
            }
            for item in draft.items
        ]
        subtotal = sum(item["line_total"] for item in items)

        order = parse_model(Order, {
            "order_id": await self._repository.next_order_id(),
            "order_number": await self._next_order_number(now),
            "user_id": draft.user_id,
            "customer": draft.customer,
            "items": items,
            "subtotal": subtotal,
            "shipping_fee": draft.shipping_fee,
            "discount": draft.discount,
            "total_amount": subtotal - draft.discount + draft.shipping_fee,
            "status": OrderStatus.PROCESSING,
            "payment_status": PaymentStatus.PENDING,
            "payment_method": draft.payment_method,
            "ordered_at": now,
            "notes": draft.notes,
        })
        created = await self._repository.add_order(order)
        logger.info(
            f"Order {created.order_number} placed by user {created.user_id}: "
            f"{created.total_amount} VND via {created.payment_method.value}"
        )
        return created

    async def _next_order_number(self, now: datetime) -> str:
        # ORD + YYYYMMDD + per-day sequence, e.g. ORD20250114003
        prefix = f"ORD{now:%Y%m%d}"
        count = await self._repository.count_orders_by_number_prefix(prefix)
        return f"{prefix}{count + 1:03d}"
