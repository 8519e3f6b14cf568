from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum
import re

from order_admin.models import parse_model
from order_admin.models.order import as_utc

ALLOWED_PROOF_FILE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
})

_BANK_BIN_RE = re.compile(r"^\d{6}$")


class ProofStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProofDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class PaymentProof(BaseModel):
    """Evidence of an offline transfer, uploaded by the customer or an admin."""

    model_config = ConfigDict(frozen=True)

    proof_id: int = Field(..., gt=0)
    order_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    file_url: str
    file_type: Optional[str] = None
    note: Optional[str] = None
    status: ProofStatus = ProofStatus.PENDING
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    @field_validator("file_url")
    @classmethod
    def _file_url(cls, value: str):
        value = (value or "").strip()
        if not value:
            raise ValueError("file_url is required")
        return value

    @field_validator("file_type")
    @classmethod
    def _file_type(cls, value: Optional[str]):
        if value is None or not value.strip():
            return None
        value = value.strip().lower()
        if value not in ALLOWED_PROOF_FILE_TYPES:
            raise ValueError("Invalid file type. Only images (JPEG, PNG, GIF, WebP) and PDF are allowed")
        return value

    @field_validator("created_at", "reviewed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]):
        return as_utc(value) if value is not None else None

    @property
    def is_pending(self) -> bool:
        return self.status == ProofStatus.PENDING

    def to_dict(self):
        return self.model_dump(mode="json")


class BankAccount(BaseModel):
    """Receiving account for transfer payments. Compared by value."""

    model_config = ConfigDict(frozen=True)

    bank_id: str
    bank_bin: str
    account_no: str
    account_name: str

    @field_validator("bank_id", "account_no", "account_name")
    @classmethod
    def _required(cls, value: str, info):
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{info.field_name} is required")
        return value

    @field_validator("bank_bin")
    @classmethod
    def _bank_bin(cls, value: str):
        value = (value or "").strip()
        if not _BANK_BIN_RE.match(value):
            raise ValueError("bank_bin must be exactly 6 digits")
        return value

    def __str__(self) -> str:
        return f"{self.account_name} - {self.account_no} ({self.bank_id})"


class PaymentQR(BaseModel):
    model_config = ConfigDict(frozen=True)

    qr_url: str
    amount: int
    reference: str
    description: str
    bank_name: str
    account_no: str
    account_name: str

    def summary(self) -> dict:
        """Fields a payment page shows next to the QR image."""
        return {
            "bank_name": self.bank_name,
            "account_no": self.account_no,
            "account_name": self.account_name,
            "amount": self.amount,
            "reference": self.reference,
            "description": self.description,
        }


_ORDER_NUMBER_IN_MEMO_RE = re.compile(r"ORD\d{8,11}", re.IGNORECASE)

# transfers within this many VND of the order total are accepted
AMOUNT_TOLERANCE_VND = 1000


class BankTransaction(BaseModel):
    """An incoming transfer reported by the bank feed (SePay webhook)."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    amount: int
    description: str = ""
    transaction_date: datetime
    account_number: str
    bank_code: str = ""
    reference_number: Optional[str] = None
    bank_brand_name: Optional[str] = None

    @field_validator("transaction_id", mode="before")
    @classmethod
    def _transaction_id(cls, value):
        value = "" if value is None else str(value).strip()
        if not value:
            raise ValueError("transaction_id is required")
        return value

    @field_validator("transaction_date")
    @classmethod
    def _utc(cls, value: datetime):
        return as_utc(value)

    @classmethod
    def from_sepay(cls, payload: dict) -> "BankTransaction":
        """Build from a SePay webhook body; bad input raises ValidationError."""
        return parse_model(cls, {
            "transaction_id": payload.get("id"),
            "amount": payload.get("amount_in") or payload.get("transferAmount"),
            "description": payload.get("transaction_content") or payload.get("content") or "",
            "transaction_date": payload.get("transaction_date") or payload.get("transactionDate"),
            "account_number": payload.get("account_number") or payload.get("accountNumber") or "",
            "bank_code": str(payload.get("code") or payload.get("bank_account_id") or ""),
            "reference_number": payload.get("reference_number") or payload.get("referenceCode"),
            "bank_brand_name": payload.get("bank_brand_name") or payload.get("gateway"),
        })

    def order_number(self) -> Optional[str]:
        """Order number quoted in the transfer memo, e.g. ``ORD20250114003``."""
        match = _ORDER_NUMBER_IN_MEMO_RE.search(self.description)
        return match.group(0).upper() if match else None

    def is_valid_for(self, account_no: str) -> bool:
        return self.account_number == account_no and self.amount > 0

    def matches_amount(self, expected: int, tolerance: int = AMOUNT_TOLERANCE_VND) -> bool:
        return abs(self.amount - expected) <= tolerance


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    INVALID_TRANSACTION = "invalid_transaction"
    NO_ORDER_NUMBER = "no_order_number"
    ORDER_NOT_FOUND = "order_not_found"
    ALREADY_PAID = "already_paid"
    ORDER_CLOSED = "order_closed"
    AMOUNT_MISMATCH = "amount_mismatch"


class TransferVerification(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: VerificationOutcome
    transaction_id: str
    order_number: Optional[str] = None
    proof: Optional[PaymentProof] = None

    @property
    def verified(self) -> bool:
        return self.outcome == VerificationOutcome.VERIFIED
