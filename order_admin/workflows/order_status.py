import logging
from datetime import datetime
from typing import FrozenSet, Optional, Tuple

from order_admin.models.errors import TransitionError, ValidationError
from order_admin.models.order import (
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StatusChange,
    utcnow,
)

logger = logging.getLogger(__name__)

# Cancelled and Returned have no way out.
_TRANSITIONS = {
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPING, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.RETURNED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def _coerce_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value}", field="status")


class OrderStatusStateMachine:
    """
    Guarded transitions for Order.status.

    Orders are immutable: a successful transition returns a new Order carrying
    one extra history row, together with that row so the repository can
    insert it. A rejected transition raises and leaves the input untouched.
    """

    @staticmethod
    def allowed_targets(order: Order) -> FrozenSet[OrderStatus]:
        return _TRANSITIONS[order.status]

    @classmethod
    def can_transition(cls, order: Order, new_status) -> bool:
        try:
            cls._check(order, _coerce_status(new_status), note="-")
        except (TransitionError, ValidationError):
            return False
        return True

    @classmethod
    def transition(
        cls,
        order: Order,
        new_status,
        *,
        admin_id: int,
        note: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Tuple[Order, StatusChange]:
        target = _coerce_status(new_status)
        note = (note or "").strip()
        cls._check(order, target, note)

        change = StatusChange(
            order_id=order.order_id,
            old_status=order.status,
            new_status=target,
            note=note,
            actor_admin_id=admin_id,
            at=at or utcnow(),
        )
        update = {
            "status": target,
            "status_history": order.status_history + (change,),
        }
        if target == OrderStatus.RETURNED and order.payment_status == PaymentStatus.PAID:
            update["payment_status"] = PaymentStatus.REFUNDED

        logger.debug(f"Order {order.order_number}: {order.status.value} -> {target.value}")
        return order.model_copy(update=update), change

    @staticmethod
    def _check(order: Order, target: OrderStatus, note: str) -> None:
        if target not in _TRANSITIONS[order.status]:
            raise TransitionError(order.status, target)

        if target == OrderStatus.SHIPPING:
            paid = order.payment_status == PaymentStatus.PAID
            if not paid and order.payment_method != PaymentMethod.COD:
                raise TransitionError(
                    order.status,
                    target,
                    f"Order {order.order_number} cannot ship before its "
                    f"{order.payment_method.value} payment is verified",
                )

        if target == OrderStatus.RETURNED and not note:
            raise ValidationError("A reason is required to return an order", field="note")

    # Named transitions used by the admin use cases

    @classmethod
    def confirm(cls, order: Order, *, admin_id: int, note: Optional[str] = None, at: Optional[datetime] = None):
        return cls.transition(order, OrderStatus.SHIPPING, admin_id=admin_id, note=note, at=at)

    @classmethod
    def mark_delivered(cls, order: Order, *, admin_id: int, note: Optional[str] = None, at: Optional[datetime] = None):
        return cls.transition(order, OrderStatus.DELIVERED, admin_id=admin_id, note=note, at=at)

    @classmethod
    def cancel(cls, order: Order, reason: Optional[str], *, admin_id: int, at: Optional[datetime] = None):
        return cls.transition(order, OrderStatus.CANCELLED, admin_id=admin_id, note=reason, at=at)

    @classmethod
    def process_return(cls, order: Order, reason: str, *, admin_id: int, at: Optional[datetime] = None):
        return cls.transition(order, OrderStatus.RETURNED, admin_id=admin_id, note=reason, at=at)
