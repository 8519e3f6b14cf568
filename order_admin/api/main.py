from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from order_admin.api.admin_orders import router as admin_orders_router
from order_admin.api.orders import router as orders_router
from order_admin.api.payments import router as payments_router, webhook_router
from order_admin.api.schemas import failure, ok
from order_admin.config import Settings, get_settings
from order_admin.models.errors import OrderDomainError
from order_admin.repositories.memory import InMemoryOrderRepository
from order_admin.services.admin_orders import AdminOrderService
from order_admin.services.audit import (
    AuditDispatcher,
    DirectAuditDispatcher,
    TemporalAuditDispatcher,
    build_audit_log,
)
from order_admin.services.checkout import CheckoutService
from order_admin.utils.temporal import get_temporal_client

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


async def _connect_audit(settings: Settings, audit_log) -> AuditDispatcher:
    if not settings.audit_enabled:
        logger.info("Temporal audit workflow disabled; writing audit entries directly")
        return DirectAuditDispatcher(audit_log)
    try:
        client = await get_temporal_client(settings)
        logger.info(f"Connected to Temporal server at {settings.temporal_address} in namespace '{settings.temporal_namespace}'")
        return TemporalAuditDispatcher(client, settings.audit_task_queue)
    except Exception as e:
        logger.error(f"Failed to connect to Temporal: {e}; writing audit entries directly")
        return DirectAuditDispatcher(audit_log)


def create_app(
    repository=None,
    audit: AuditDispatcher | None = None,
    settings: Settings | None = None,
    audit_log=None,
) -> FastAPI:
    settings = settings or get_settings()
    repository = repository or InMemoryOrderRepository()
    audit_log = audit_log or build_audit_log(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        dispatcher = audit or await _connect_audit(settings, audit_log)
        app.state.admin_service = AdminOrderService(
            repository,
            dispatcher,
            bank_account=settings.bank_account,
            qr_template=settings.payment_qr_template,
            audit_log=audit_log,
        )
        app.state.checkout_service = CheckoutService(repository)
        yield

    app = FastAPI(title="Order Admin API", lifespan=lifespan)
    app.state.audit_log = audit_log
    app.state.settings = settings

    app.include_router(admin_orders_router, prefix="/admin/orders", tags=["admin-orders"])
    app.include_router(orders_router, prefix="/orders", tags=["orders"])
    app.include_router(payments_router, prefix="/orders", tags=["payments"])
    app.include_router(webhook_router, prefix="/payments", tags=["payments"])

    @app.exception_handler(OrderDomainError)
    async def domain_error_handler(request: Request, exc: OrderDomainError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=failure(exc.message, exc.code, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content=failure("Invalid request", "VALIDATION_ERROR", details))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=failure("Internal server error", "INTERNAL_ERROR"))

    @app.get("/health")
    async def health():
        return ok("ok")

    return app


settings = get_settings()
configure_logging(settings)
app = create_app(settings=settings)

if __name__ == "__main__":
    import uvicorn
    # Use reload=True for development convenience
    uvicorn.run("order_admin.api.main:app", host=settings.api_host, port=settings.api_port, reload=True)
