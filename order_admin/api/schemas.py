from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

from order_admin.models.order import OrderStatus, PaymentMethod, PaymentStatus
from order_admin.models.payment import ProofDecision


class ApiModel(BaseModel):
    """Request bodies use camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None


def ok(message: str, data: Any = None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def failure(message: str, code: str, details: Any = None) -> dict:
    error = {"code": code}
    if details:
        error["details"] = details
    return {"success": False, "message": message, "error": error}


class StatusUpdateRequest(ApiModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)


class PaymentStatusUpdateRequest(ApiModel):
    payment_status: PaymentStatus
    proof_id: Optional[int] = Field(None, gt=0)
    proof_status: Optional[Literal["accepted", "rejected"]] = None

    def proof_decision(self) -> Optional[ProofDecision]:
        if self.proof_status is None:
            return None
        return ProofDecision.ACCEPT if self.proof_status == "accepted" else ProofDecision.REJECT


class ReasonRequest(ApiModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentProofSubmitRequest(ApiModel):
    user_id: int = Field(..., gt=0)
    file_url: str = Field(..., min_length=1)
    file_type: Optional[str] = None
    note: Optional[str] = Field(None, max_length=500)


class CustomerRequest(ApiModel):
    name: str
    email: str
    phone: str
    address: str
    city: str = ""


class CheckoutItemRequest(ApiModel):
    product_id: int
    product_name: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: int = Field(..., ge=0)


class CheckoutRequest(ApiModel):
    user_id: int = Field(..., gt=0)
    customer: CustomerRequest
    items: List[CheckoutItemRequest] = Field(..., min_length=1)
    shipping_fee: int = Field(0, ge=0)
    discount: int = Field(0, ge=0)
    payment_method: PaymentMethod
    notes: Optional[str] = None

    def to_draft(self) -> dict:
        # plain dict so the customer snapshot is validated at the domain boundary
        return self.model_dump()
