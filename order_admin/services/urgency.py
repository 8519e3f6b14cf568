from pydantic import BaseModel, ConfigDict
from datetime import datetime, timedelta
from typing import Iterable, List

from order_admin.models.order import Order, OrderStatus, as_utc

CONFIRMATION_WINDOW = timedelta(hours=24)
URGENT_WITHIN_MINUTES = 12 * 60


class TimeRemaining(BaseModel):
    model_config = ConfigDict(frozen=True)

    deadline: datetime
    total_minutes: int
    hours: int
    minutes: int
    is_expired: bool
    is_urgent: bool


class OrderUrgencyCalculator:
    """
    Time left before an order must be confirmed.

    Advisory only: an expired order is flagged for display, nothing here
    cancels or escalates it.
    """

    @staticmethod
    def time_remaining(ordered_at: datetime, now: datetime) -> TimeRemaining:
        deadline = as_utc(ordered_at) + CONFIRMATION_WINDOW
        remaining = deadline - as_utc(now)

        if remaining <= timedelta(0):
            return TimeRemaining(
                deadline=deadline,
                total_minutes=0,
                hours=0,
                minutes=0,
                is_expired=True,
                is_urgent=False,
            )

        total_minutes = int(remaining.total_seconds() // 60)
        return TimeRemaining(
            deadline=deadline,
            total_minutes=total_minutes,
            hours=total_minutes // 60,
            minutes=total_minutes % 60,
            is_expired=False,
            is_urgent=total_minutes <= URGENT_WITHIN_MINUTES,
        )

    @classmethod
    def sort_by_urgency(cls, orders: Iterable[Order], now: datetime) -> List[Order]:
        """
        Processing orders first, overdue and urgent ones ahead of the rest, each
        group by earliest deadline; other orders keep their relative order.
        """

        def sort_key(order: Order):
            if order.status != OrderStatus.PROCESSING:
                return (1, 0, 0)
            remaining = cls.time_remaining(order.ordered_at, now)
            pressing = remaining.is_expired or remaining.is_urgent
            return (0, 0 if pressing else 1, remaining.deadline.timestamp())

        return sorted(orders, key=sort_key)
