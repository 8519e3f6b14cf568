from __future__ import annotations

from typing import Optional


class OrderDomainError(ValueError):
    """Base class for every business-rule failure raised by the order core."""

    code = "ORDER_ERROR"
    http_status = 400

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(OrderDomainError):
    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class TransitionError(OrderDomainError):
    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, current, attempted, message: Optional[str] = None):
        current_value = getattr(current, "value", current)
        attempted_value = getattr(attempted, "value", attempted)
        super().__init__(
            message or f"Cannot transition from {current_value} to {attempted_value}",
            details={"from": current_value, "to": attempted_value},
        )
        self.current = current
        self.attempted = attempted


class ProofAlreadyReviewedError(OrderDomainError):
    code = "PROOF_ALREADY_REVIEWED"
    http_status = 409

    def __init__(self, proof_id, status):
        status_value = getattr(status, "value", status)
        super().__init__(
            f"Payment proof {proof_id} has already been {status_value}",
            details={"proof_id": proof_id, "status": status_value},
        )
        self.proof_id = proof_id
        self.status = status


class UnsupportedPaymentMethodError(OrderDomainError):
    code = "UNSUPPORTED_PAYMENT_METHOD"
    http_status = 400

    def __init__(self, payment_method):
        method_value = getattr(payment_method, "value", payment_method)
        super().__init__(
            f"Payment method {method_value} does not support QR payment",
            details={"payment_method": method_value},
        )
        self.payment_method = payment_method


class AlreadyPaidError(OrderDomainError):
    code = "ALREADY_PAID"
    http_status = 409

    def __init__(self, order_number: str):
        super().__init__(f"Order {order_number} is already paid", details={"order_number": order_number})


class OrderCancelledError(OrderDomainError):
    code = "ORDER_CANCELLED"
    http_status = 409

    def __init__(self, order_number: str):
        super().__init__(
            f"Order {order_number} is cancelled",
            details={"order_number": order_number},
        )


class NotFoundError(OrderDomainError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} {identifier} not found", details={"resource": resource, "id": identifier})
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(OrderDomainError):
    code = "UNAUTHORIZED"
    http_status = 401

    def __init__(self, message: str = "Admin authentication required", *, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.code = "FORBIDDEN"
            self.http_status = 403
