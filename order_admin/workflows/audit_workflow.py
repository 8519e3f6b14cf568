from temporalio import workflow
from temporalio.common import RetryPolicy
from datetime import timedelta

with workflow.unsafe.imports_passed_through():
    from order_admin.activities.audit_activities import AuditActivities


@workflow.defn(name="AdminAuditWorkflow")
class AdminAuditWorkflow:
    def __init__(self):
        self._retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=1),
            backoff_coefficient=2.0,
            maximum_interval=timedelta(seconds=30),
            maximum_attempts=5,
            # Do not retry ApplicationError (malformed entry)
            non_retryable_error_types=["ApplicationError"],
        )

    @workflow.run
    async def run(self, entry: dict) -> dict:
        workflow.logger.info(
            f"Starting AdminAuditWorkflow for {entry.get('action')} on order {entry.get('target_id')}"
        )
        recorded = await workflow.execute_activity_method(
            AuditActivities.record_admin_action,
            entry,
            retry_policy=self._retry_policy,
            start_to_close_timeout=timedelta(seconds=30),
        )
        workflow.logger.info(f"Audit entry {recorded.get('log_id')} recorded")
        return recorded
