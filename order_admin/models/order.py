from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, Tuple
from datetime import datetime, timezone
from enum import Enum
import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPING = "Shipping"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.RETURNED, OrderStatus.CANCELLED})


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    COD = "cod"
    BANK_TRANSFER = "bank_transfer"
    MOMO = "momo"
    ZALOPAY = "zalopay"
    VNPAY = "vnpay"


# Methods that are paid against a transfer QR and verified with a payment proof
QR_PAYMENT_METHODS = frozenset({
    PaymentMethod.BANK_TRANSFER,
    PaymentMethod.MOMO,
    PaymentMethod.ZALOPAY,
    PaymentMethod.VNPAY,
})


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerSnapshot(BaseModel):
    """Copy of the customer's contact details taken when the order was placed."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    phone: str
    address: str
    city: str = ""

    @field_validator("name", "phone", "address")
    @classmethod
    def _required(cls, value: str, info):
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{info.field_name} is required")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str):
        value = (value or "").strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("a valid email is required")
        return value


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: int = Field(..., ge=0)
    line_total: int = Field(..., ge=0)

    @model_validator(mode="before")
    @classmethod
    def _fill_line_total(cls, data):
        if isinstance(data, dict) and data.get("line_total") is None:
            data = dict(data)
            try:
                data["line_total"] = int(data["quantity"]) * int(data["unit_price"])
            except (KeyError, TypeError, ValueError):
                # leave it to field validation to report the bad input
                pass
        return data

    @model_validator(mode="after")
    def _check_line_total(self):
        if self.line_total != self.quantity * self.unit_price:
            raise ValueError("line_total must equal quantity * unit_price")
        return self


class StatusChange(BaseModel):
    """One row of an order's status history. Rows are only ever inserted."""

    model_config = ConfigDict(frozen=True)

    order_id: int
    old_status: OrderStatus
    new_status: OrderStatus
    note: str = ""
    actor_admin_id: int
    at: datetime

    @field_validator("at")
    @classmethod
    def _utc(cls, value: datetime):
        return as_utc(value)


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: int = Field(..., gt=0)
    order_number: str
    user_id: int = Field(..., gt=0)
    customer: CustomerSnapshot
    items: Tuple[OrderItem, ...] = Field(..., min_length=1)
    subtotal: int = Field(..., ge=0)
    shipping_fee: int = Field(0, ge=0)
    discount: int = Field(0, ge=0)
    total_amount: int
    status: OrderStatus = OrderStatus.PROCESSING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod
    ordered_at: datetime
    notes: Optional[str] = None
    version: int = Field(0, ge=0)
    status_history: Tuple[StatusChange, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if isinstance(data, dict) and data.get("total_amount") is None:
            data = dict(data)
            try:
                data["total_amount"] = (
                    int(data["subtotal"]) - int(data.get("discount") or 0) + int(data.get("shipping_fee") or 0)
                )
            except (KeyError, TypeError, ValueError):
                pass
        return data

    @field_validator("order_number")
    @classmethod
    def _order_number(cls, value: str):
        value = (value or "").strip()
        if not value:
            raise ValueError("order_number is required")
        return value

    @field_validator("ordered_at")
    @classmethod
    def _utc(cls, value: datetime):
        return as_utc(value)

    @model_validator(mode="after")
    def _check_total(self):
        if self.total_amount != self.subtotal - self.discount + self.shipping_fee:
            raise ValueError("total_amount must equal subtotal - discount + shipping_fee")
        if self.total_amount < 0:
            raise ValueError("discount cannot exceed subtotal plus shipping fee")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def supports_qr_payment(self) -> bool:
        return self.payment_method in QR_PAYMENT_METHODS

    def to_dict(self):
        return self.model_dump(mode="json")


class OrderFilters(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    search: Optional[str] = None
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

    def matches(self, order: Order) -> bool:
        if self.status is not None and order.status != self.status:
            return False
        if self.payment_status is not None and order.payment_status != self.payment_status:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = (
                order.order_number.lower(),
                order.customer.name.lower(),
                order.customer.email,
                order.customer.phone,
            )
            if not any(needle in value for value in haystack):
                return False
        return True
