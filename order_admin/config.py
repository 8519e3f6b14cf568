import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from order_admin.models import parse_model
from order_admin.models.payment import BankAccount


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    api_host: str
    api_port: int
    log_level: str
    temporal_host: str
    temporal_port: str
    temporal_namespace: str
    audit_task_queue: str
    audit_enabled: bool
    audit_log_path: str
    jwt_secret: str
    jwt_algorithm: str
    sepay_webhook_secret: str
    payment_bank_id: str
    payment_bank_bin: str
    payment_account_no: str
    payment_account_name: str
    payment_qr_template: str

    @property
    def temporal_address(self) -> str:
        return f"{self.temporal_host}:{self.temporal_port}"

    @property
    def bank_account(self) -> BankAccount:
        return parse_model(BankAccount, {
            "bank_id": self.payment_bank_id,
            "bank_bin": self.payment_bank_bin,
            "account_no": self.payment_account_no,
            "account_name": self.payment_account_name,
        })


def load_settings() -> Settings:
    load_dotenv()  # Load environment variables from .env file
    return Settings(
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        temporal_host=os.getenv("TEMPORAL_HOST", "localhost"),
        temporal_port=os.getenv("TEMPORAL_PORT", "7233"),
        temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", "default"),
        audit_task_queue=os.getenv("AUDIT_TASK_QUEUE", "admin-audit-task-queue"),
        audit_enabled=_flag(os.getenv("AUDIT_ENABLED", "true")),
        audit_log_path=os.getenv("AUDIT_LOG_PATH", ""),
        jwt_secret=os.getenv("JWT_SECRET", "dev_secret_change_me"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        sepay_webhook_secret=os.getenv("SEPAY_WEBHOOK_SECRET", "dev_webhook_secret_change_me"),
        payment_bank_id=os.getenv("PAYMENT_BANK_ID", "VCB"),
        payment_bank_bin=os.getenv("PAYMENT_BANK_BIN", "970436"),
        payment_account_no=os.getenv("PAYMENT_ACCOUNT_NO", "0123456789"),
        payment_account_name=os.getenv("PAYMENT_ACCOUNT_NAME", "CONG TY TNHH STOREFRONT"),
        payment_qr_template=os.getenv("PAYMENT_QR_TEMPLATE", "MND4rau"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
