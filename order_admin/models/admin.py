from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum


class AdminAction(str, Enum):
    UPDATE_ORDER_STATUS = "UPDATE_ORDER_STATUS"
    UPDATE_PAYMENT_STATUS = "UPDATE_PAYMENT_STATUS"
    CANCEL_ORDER = "CANCEL_ORDER"
    PROCESS_REFUND = "PROCESS_REFUND"


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    log_id: Optional[int] = None
    admin_id: int = Field(..., gt=0)
    action: AdminAction
    target_type: str = "orders"
    target_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    at: datetime

    def to_dict(self):
        return self.model_dump(mode="json")


class AdminPrincipal(BaseModel):
    """Authenticated admin, resolved once per request by the auth boundary."""

    model_config = ConfigDict(frozen=True)

    admin_id: int = Field(..., gt=0)
    email: str = ""
    role: str = "admin"
