import asyncio
import json
import logging
from pathlib import Path
from typing import List

from order_admin.models.admin import AuditEntry

logger = logging.getLogger(__name__)


class JsonlAuditLogRepository:
    """
    Append-only audit store in a JSON-lines file.

    The API and the audit worker run in separate processes; pointing both at
    the same file lets the API read what the worker recorded. Ids are assigned
    from the line count, so only one process should write at a time (the
    worker when Temporal is up, the API otherwise).
    """

    def __init__(self, path):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def log_action(self, entry: AuditEntry) -> AuditEntry:
        async with self._lock:
            return await asyncio.to_thread(self._append, entry)

    async def list_for_target(self, target_type: str, target_id: str) -> List[AuditEntry]:
        entries = await asyncio.to_thread(self._read_all)
        return [
            entry for entry in entries
            if entry.target_type == target_type and entry.target_id == target_id
        ]

    def _append(self, entry: AuditEntry) -> AuditEntry:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        stored = entry.model_copy(update={"log_id": self._count_lines() + 1})
        with self._path.open("a", encoding="utf-8") as f:
            f.write(stored.model_dump_json() + "\n")
        logger.debug(f"Audit entry {stored.log_id} appended to {self._path}")
        return stored

    def _count_lines(self) -> int:
        if not self._path.exists():
            return 0
        with self._path.open(encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())

    def _read_all(self) -> List[AuditEntry]:
        if not self._path.exists():
            return []
        with self._path.open(encoding="utf-8") as f:
            return [AuditEntry.model_validate_json(line) for line in f if line.strip()]
