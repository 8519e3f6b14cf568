from fastapi import APIRouter, Depends, Query, Request
from typing import Optional

from order_admin.api.auth import require_admin
from order_admin.api.schemas import (
    ApiResponse,
    PaymentStatusUpdateRequest,
    ReasonRequest,
    StatusUpdateRequest,
    ok,
)
from order_admin.models.admin import AdminPrincipal
from order_admin.models.order import OrderFilters, OrderStatus, PaymentStatus
from order_admin.services.admin_orders import AdminOrderService

router = APIRouter()

_ERRORS = {
    400: {"model": ApiResponse, "description": "Invalid request"},
    401: {"model": ApiResponse, "description": "Not authenticated"},
    403: {"model": ApiResponse, "description": "Not an admin"},
    404: {"model": ApiResponse, "description": "Order not found"},
    409: {"model": ApiResponse, "description": "Action not allowed in the order's current state"},
}


def get_admin_service(request: Request) -> AdminOrderService:
    return request.app.state.admin_service


@router.get("", responses=_ERRORS)
async def list_orders(
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    """Orders for the admin dashboard, urgent unconfirmed orders first."""
    filters = OrderFilters(status=status, payment_status=payment_status, search=search, limit=limit, offset=offset)
    views = await service.list_orders(filters)
    return ok("Orders retrieved", {
        "orders": [view.model_dump(mode="json") for view in views],
        "count": len(views),
        "limit": limit,
        "offset": offset,
    })


@router.get("/{order_id}", responses=_ERRORS)
async def get_order(
    order_id: int,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    view = await service.get_order(order_id)
    return ok("Order retrieved", view.model_dump(mode="json"))


@router.patch("/{order_id}/status", responses=_ERRORS)
async def update_order_status(
    order_id: int,
    body: StatusUpdateRequest,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    order = await service.update_status(order_id, body.status, body.note, admin)
    return ok(f"Order status updated to {order.status.value}", order.to_dict())


@router.patch("/{order_id}/payment-status", responses=_ERRORS)
async def update_payment_status(
    order_id: int,
    body: PaymentStatusUpdateRequest,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    order = await service.update_payment_status(
        order_id,
        body.payment_status,
        admin,
        proof_id=body.proof_id,
        proof_decision=body.proof_decision(),
    )
    return ok(f"Payment status updated to {order.payment_status.value}", order.to_dict())


@router.post("/{order_id}/cancel", responses=_ERRORS)
async def cancel_order(
    order_id: int,
    body: Optional[ReasonRequest] = None,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    reason = body.reason if body else None
    order = await service.cancel_order(order_id, reason, admin)
    return ok("Order cancelled", order.to_dict())


@router.post("/{order_id}/refund", responses=_ERRORS)
async def process_refund(
    order_id: int,
    body: Optional[ReasonRequest] = None,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    reason = body.reason if body else None
    order = await service.process_refund(order_id, reason, admin)
    return ok("Refund processed", order.to_dict())


@router.get("/{order_id}/audit", responses=_ERRORS)
async def get_audit_trail(
    order_id: int,
    admin: AdminPrincipal = Depends(require_admin),
    service: AdminOrderService = Depends(get_admin_service),
):
    """Admin actions recorded against the order, oldest first."""
    entries = await service.get_audit_trail(order_id, admin)
    return ok("Audit trail retrieved", [entry.to_dict() for entry in entries])
