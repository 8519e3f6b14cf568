from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from order_admin.activities.audit_activities import AuditActivities
from order_admin.models.admin import AdminAction, AuditEntry
from order_admin.config import get_settings
from order_admin.repositories.audit_file import JsonlAuditLogRepository
from order_admin.repositories.memory import InMemoryAuditLogRepository
from order_admin.services.audit import DirectAuditDispatcher, TemporalAuditDispatcher, build_audit_log
from order_admin.workflows.audit_workflow import AdminAuditWorkflow

AT = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)


def entry(**overrides) -> AuditEntry:
    data = {
        "admin_id": 7,
        "action": AdminAction.CANCEL_ORDER,
        "target_id": "1001",
        "payload": {"order_number": "ORD-1001", "note": "customer request"},
        "at": AT,
    }
    data.update(overrides)
    return AuditEntry(**data)


async def test_record_admin_action_stores_entry():
    audit_log = InMemoryAuditLogRepository()
    activities = AuditActivities(audit_log)

    result = await ActivityEnvironment().run(activities.record_admin_action, entry().to_dict())

    assert result["log_id"] == 1
    assert result["action"] == "CANCEL_ORDER"
    stored = await audit_log.list_for_target("orders", "1001")
    assert [e.payload["order_number"] for e in stored] == ["ORD-1001"]


async def test_malformed_entry_is_not_retried():
    activities = AuditActivities(InMemoryAuditLogRepository())

    with pytest.raises(ApplicationError) as exc_info:
        await ActivityEnvironment().run(activities.record_admin_action, {"admin_id": 0, "action": "DELETE"})

    assert exc_info.value.non_retryable


async def test_temporal_dispatcher_starts_audit_workflow():
    client = AsyncMock()
    dispatcher = TemporalAuditDispatcher(client, "admin-audit-task-queue")

    await dispatcher.dispatch(entry())

    client.start_workflow.assert_awaited_once()
    args, kwargs = client.start_workflow.call_args
    assert args[0] == AdminAuditWorkflow.run
    assert args[1]["target_id"] == "1001"
    assert kwargs["task_queue"] == "admin-audit-task-queue"
    assert kwargs["id"].startswith("admin-audit-1001-")


async def test_direct_dispatcher_writes_to_store():
    audit_log = InMemoryAuditLogRepository()

    await DirectAuditDispatcher(audit_log).dispatch(entry())
    await DirectAuditDispatcher(audit_log).dispatch(entry(target_id="1002"))

    assert len(await audit_log.list_for_target("orders", "1001")) == 1
    assert (await audit_log.list_for_target("orders", "1002"))[0].log_id == 2


async def test_jsonl_store_is_readable_from_another_instance(tmp_path):
    path = tmp_path / "audit" / "admin_audit.jsonl"
    writer = JsonlAuditLogRepository(path)
    reader = JsonlAuditLogRepository(path)

    first = await writer.log_action(entry())
    second = await writer.log_action(entry(action=AdminAction.PROCESS_REFUND))
    await writer.log_action(entry(target_id="1002"))

    assert (first.log_id, second.log_id) == (1, 2)
    stored = await reader.list_for_target("orders", "1001")
    assert [e.action for e in stored] == [AdminAction.CANCEL_ORDER, AdminAction.PROCESS_REFUND]
    assert stored[0] == first


async def test_jsonl_store_starts_empty(tmp_path):
    assert await JsonlAuditLogRepository(tmp_path / "missing.jsonl").list_for_target("orders", "1") == []


def test_build_audit_log_uses_configured_path(tmp_path):
    settings = get_settings()

    shared = build_audit_log(replace(settings, audit_log_path=str(tmp_path / "a.jsonl")))
    local = build_audit_log(replace(settings, audit_log_path=""))

    assert isinstance(shared, JsonlAuditLogRepository)
    assert isinstance(local, InMemoryAuditLogRepository)
