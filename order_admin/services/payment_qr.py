"""
VietQR payment codes for transfer-based payment methods.

The generated URL is consumed by the VietQR image API and scanned by banking
apps, so its layout is a wire contract:

    https://api.vietqr.io/image/{BANK_BIN}-{ACCOUNT_NO}-{TEMPLATE}.jpg
        ?accountName=...&amount=...&addInfo=...
"""
from urllib.parse import urlencode

from order_admin.models.errors import (
    AlreadyPaidError,
    OrderCancelledError,
    UnsupportedPaymentMethodError,
    ValidationError,
)
from order_admin.models.order import Order, OrderStatus, PaymentStatus
from order_admin.models.payment import BankAccount, PaymentQR

VIETQR_BASE_URL = "https://api.vietqr.io/image"
DEFAULT_TEMPLATE = "MND4rau"

# Source: https://api.vietqr.io/v2/banks
BANK_NAMES = {
    "VCB": "Vietcombank",
    "TCB": "Techcombank",
    "MB": "MB Bank",
    "VPB": "VPBank",
    "ACB": "ACB",
    "VIB": "VIB",
    "TPB": "TPBank",
    "STB": "Sacombank",
    "HDB": "HDBank",
    "BIDV": "BIDV",
    "CTG": "VietinBank",
    "EIB": "Eximbank",
    "MSB": "MSB",
    "NAB": "Nam A Bank",
    "OCB": "OCB",
    "SHB": "SHB",
    "VAB": "VietA Bank",
    "VRB": "VRB",
    "ABB": "ABBank",
    "BAB": "BacA Bank",
    "BVB": "Bao Viet Bank",
    "CBB": "CB Bank",
    "DBI": "DongA Bank",
    "KLB": "Kien Long Bank",
    "LPB": "LienVietPostBank",
    "NCB": "NCB",
    "PGB": "PGBank",
    "PVCB": "PVcomBank",
    "SCB": "SCB",
    "SEA": "SeABank",
    "VBB": "VietBank",
    "WRB": "Woori Bank",
}


def bank_name(bank_id: str) -> str:
    return BANK_NAMES.get(bank_id, bank_id)


def transfer_description(reference: str) -> str:
    return f"Thanh toan hoa don {reference}"


class PaymentQRGenerator:
    """Pure and deterministic: no clock, no randomness, no I/O."""

    @staticmethod
    def generate(
        bank_account: BankAccount,
        amount_vnd: int,
        reference: str,
        template: str = DEFAULT_TEMPLATE,
    ) -> PaymentQR:
        if isinstance(amount_vnd, bool) or not isinstance(amount_vnd, int):
            raise ValidationError("Amount must be a whole number of VND", field="amount")
        if amount_vnd <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("Payment reference is required", field="reference")
        template = (template or "").strip() or DEFAULT_TEMPLATE

        description = transfer_description(reference)
        query = urlencode(
            {
                "accountName": bank_account.account_name,
                "amount": str(amount_vnd),
                "addInfo": description,
            },
            safe="*",
        )
        qr_url = (
            f"{VIETQR_BASE_URL}/{bank_account.bank_bin}-{bank_account.account_no}-{template}.jpg?{query}"
        )

        return PaymentQR(
            qr_url=qr_url,
            amount=amount_vnd,
            reference=reference,
            description=description,
            bank_name=bank_name(bank_account.bank_id),
            account_no=bank_account.account_no,
            account_name=bank_account.account_name,
        )

    @classmethod
    def generate_for_order(
        cls,
        bank_account: BankAccount,
        order: Order,
        template: str = DEFAULT_TEMPLATE,
    ) -> PaymentQR:
        if order.payment_status == PaymentStatus.PAID:
            raise AlreadyPaidError(order.order_number)
        if order.status == OrderStatus.CANCELLED:
            raise OrderCancelledError(order.order_number)
        if not order.supports_qr_payment:
            raise UnsupportedPaymentMethodError(order.payment_method)
        return cls.generate(bank_account, order.total_amount, order.order_number, template)
