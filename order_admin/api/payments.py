from fastapi import APIRouter, Depends, Header, Request, status
from typing import Optional
import hashlib
import hmac
import json
import logging

from order_admin.api.admin_orders import get_admin_service
from order_admin.api.schemas import ApiResponse, PaymentProofSubmitRequest, ok
from order_admin.models.errors import AuthorizationError, ValidationError
from order_admin.models.payment import BankTransaction
from order_admin.services.admin_orders import AdminOrderService

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()

_ERRORS = {
    400: {"model": ApiResponse, "description": "Invalid request or payment method"},
    404: {"model": ApiResponse, "description": "Order not found"},
    409: {"model": ApiResponse, "description": "Order already paid or cancelled"},
}


def _qr_payload(qr) -> dict:
    return {"qr_url": qr.qr_url, "summary": qr.summary()}


@router.get("/{order_id}/payment-qr", responses=_ERRORS)
async def get_payment_qr(order_id: int, service: AdminOrderService = Depends(get_admin_service)):
    qr = await service.get_payment_qr(order_id)
    return ok("Payment QR generated", _qr_payload(qr))


@router.get("/by-number/{order_number}/payment-qr", responses=_ERRORS)
async def get_payment_qr_by_number(order_number: str, service: AdminOrderService = Depends(get_admin_service)):
    qr = await service.get_payment_qr_by_number(order_number)
    return ok("Payment QR generated", _qr_payload(qr))


@router.get("/by-number/{order_number}/payment-status", responses=_ERRORS)
async def check_payment_status(order_number: str, service: AdminOrderService = Depends(get_admin_service)):
    """Polled by the payment page until the transfer has been verified."""
    result = await service.check_payment_status(order_number)
    message = "Order has been paid" if result["paid"] else "Payment not received yet"
    return ok(message, result)


@router.post("/{order_id}/payment-proofs", status_code=status.HTTP_201_CREATED, responses=_ERRORS)
async def submit_payment_proof(
    order_id: int,
    body: PaymentProofSubmitRequest,
    service: AdminOrderService = Depends(get_admin_service),
):
    proof = await service.submit_payment_proof(
        order_id,
        body.user_id,
        body.file_url,
        file_type=body.file_type,
        note=body.note,
    )
    return ok("Payment proof submitted", proof.to_dict())


@router.get("/{order_id}/payment-proofs", responses=_ERRORS)
async def list_payment_proofs(order_id: int, service: AdminOrderService = Depends(get_admin_service)):
    proofs = await service.list_payment_proofs(order_id)
    return ok("Payment proofs retrieved", [proof.to_dict() for proof in proofs])


def sign_webhook_body(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> None:
    if not signature:
        raise ValidationError("Missing signature", field="x-sepay-signature")
    if not hmac.compare_digest(signature, sign_webhook_body(body, secret)):
        logger.warning("Rejected payment webhook with an invalid signature")
        raise AuthorizationError("Invalid signature")


@webhook_router.post("/webhook", responses={
    400: {"model": ApiResponse, "description": "Missing signature or malformed transaction"},
    401: {"model": ApiResponse, "description": "Invalid signature"},
})
async def payment_webhook(
    request: Request,
    x_sepay_signature: Optional[str] = Header(None, alias="x-sepay-signature"),
    service: AdminOrderService = Depends(get_admin_service),
):
    """
    SePay transfer notification. Unauthenticated; the body is signed with
    HMAC-SHA256 using SEPAY_WEBHOOK_SECRET. Transfers that match no order
    are still acknowledged so the bank feed does not resend them.
    """
    body = await request.body()
    verify_webhook_signature(body, x_sepay_signature, request.app.state.settings.sepay_webhook_secret)
    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError("Webhook body must be JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")

    transaction = BankTransaction.from_sepay(payload)
    logger.info(f"Received payment webhook for transaction {transaction.transaction_id}: {transaction.amount} VND")
    result = await service.verify_transfer(transaction)
    return ok("Webhook processed", {**result.model_dump(mode="json"), "verified": result.verified})
