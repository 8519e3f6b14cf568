import logging
import uuid
from typing import Protocol

from temporalio.client import Client

from order_admin.models.admin import AuditEntry
from order_admin.repositories.audit_file import JsonlAuditLogRepository
from order_admin.repositories.base import AuditLogRepository
from order_admin.repositories.memory import InMemoryAuditLogRepository
from order_admin.workflows.audit_workflow import AdminAuditWorkflow

logger = logging.getLogger(__name__)


class AuditDispatcher(Protocol):
    async def dispatch(self, entry: AuditEntry) -> None:
        ...


class TemporalAuditDispatcher:
    """Hands audit entries to the AdminAuditWorkflow so they survive store outages."""

    def __init__(self, client: Client, task_queue: str):
        self._client = client
        self._task_queue = task_queue

    async def dispatch(self, entry: AuditEntry) -> None:
        workflow_id = f"admin-audit-{entry.target_id}-{uuid.uuid4()}"
        await self._client.start_workflow(
            AdminAuditWorkflow.run,
            entry.to_dict(),
            id=workflow_id,
            task_queue=self._task_queue,
        )
        logger.debug(f"Started {workflow_id} for {entry.action.value}")


class DirectAuditDispatcher:
    """Writes audit entries straight to the store; used when Temporal is not reachable."""

    def __init__(self, audit_log: AuditLogRepository):
        self._audit_log = audit_log

    async def dispatch(self, entry: AuditEntry) -> None:
        await self._audit_log.log_action(entry)


def build_audit_log(settings) -> AuditLogRepository:
    """Audit store shared by the API and the worker when ``AUDIT_LOG_PATH`` is set."""
    if settings.audit_log_path:
        return JsonlAuditLogRepository(settings.audit_log_path)
    logger.warning("AUDIT_LOG_PATH is not set; audit entries are kept in process memory only")
    return InMemoryAuditLogRepository()
