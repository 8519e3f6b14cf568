from temporalio import activity
from temporalio.exceptions import ApplicationError
import pydantic

from order_admin.models.admin import AuditEntry
from order_admin.repositories.base import AuditLogRepository


class AuditActivities:
    """Activities writing the admin audit trail. The store is injected by the worker."""

    def __init__(self, audit_log: AuditLogRepository):
        self._audit_log = audit_log

    @activity.defn(name="record_admin_action")
    async def record_admin_action(self, entry: dict) -> dict:
        try:
            audit_entry = AuditEntry.model_validate(entry)
        except pydantic.ValidationError as e:
            activity.logger.error(f"Rejecting malformed audit entry: {e}")
            # Bad data will not get better on retry
            raise ApplicationError(f"Invalid audit entry: {e}", non_retryable=True)

        activity.logger.info(
            f"Recording {audit_entry.action.value} on {audit_entry.target_type} "
            f"{audit_entry.target_id} by admin {audit_entry.admin_id}"
        )
        stored = await self._audit_log.log_action(audit_entry)
        return stored.to_dict()

    def all(self) -> list:
        return [self.record_admin_action]
