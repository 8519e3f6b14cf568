import asyncio
import logging

from temporalio.worker import Worker

from order_admin.activities.audit_activities import AuditActivities
from order_admin.config import get_settings
from order_admin.services.audit import build_audit_log
from order_admin.utils.temporal import get_temporal_client
from order_admin.workflows.audit_workflow import AdminAuditWorkflow

logger = logging.getLogger(__name__)


async def main(audit_log=None):
    settings = get_settings()
    audit_log = audit_log or build_audit_log(settings)

    logger.info(f"Connecting to Temporal at {settings.temporal_address}...")
    try:
        client = await get_temporal_client(settings)
        logger.info(f"Successfully connected to namespace: {settings.temporal_namespace}")

        activities = AuditActivities(audit_log)
        audit_worker = Worker(
            client,
            task_queue=settings.audit_task_queue,
            workflows=[AdminAuditWorkflow],
            activities=activities.all(),
            max_concurrent_activities=50,
        )
        logger.info(f"Audit worker created for task queue: {settings.audit_task_queue}")

        logger.info("Starting audit worker... Press Ctrl+C to exit")
        await audit_worker.run()
    except Exception as e:
        logger.error(f"Error in worker: {e}")
        raise


def run():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
    finally:
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    run()
