"""Audit trail persisted as one document per day in the document store."""
from __future__ import annotations

import secrets
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable

from dqa_checker.config import SETTINGS
from dqa_checker.domain.repositories import DocumentNotFoundError, DocumentStore, upsert

LOG_VERSION = "1.0.0"


@dataclass(frozen=True)
class AuditEntry:
    id: str
    action: str
    entity_type: str
    entity_id: str
    entity_name: str
    status: str
    message: str
    timestamp: str
    actor: dict[str, Any] = field(default_factory=lambda: {"username": "system"})
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "id": data["id"],
            "action": data["action"],
            "entityType": data["entity_type"],
            "entityId": data["entity_id"],
            "entityName": data["entity_name"],
            "status": data["status"],
            "message": data["message"],
            "actor": data["actor"],
            "context": data["context"],
            "timestamp": data["timestamp"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            id=str(data.get("id", "")),
            action=str(data.get("action", "")),
            entity_type=str(data.get("entityType", "")),
            entity_id=str(data.get("entityId", "")),
            entity_name=str(data.get("entityName", "")),
            status=str(data.get("status", "")),
            message=str(data.get("message", "")),
            timestamp=str(data.get("timestamp", "")),
            actor=dict(data.get("actor") or {}),
            context=dict(data.get("context") or {}),
        )


def logs_key_for_day(day: date) -> str:
    return f"logs-{day.isoformat()}"


class AuditLog:
    def __init__(
        self,
        store: DocumentStore,
        namespace: str = SETTINGS.audit_namespace,
        max_entries_per_day: int = SETTINGS.audit_entries_per_day,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._max_entries = max_entries_per_day
        self._clock = clock or (lambda: datetime.now(SETTINGS.timezone))

    def log_event(
        self,
        action: str,
        entity_type: str,
        entity_id: str = "",
        entity_name: str = "",
        status: str = "success",
        message: str = "",
        context: dict[str, Any] | None = None,
    ) -> AuditEntry:
        now = self._clock()
        entry = AuditEntry(
            id=f"{int(now.timestamp() * 1000)}-{secrets.token_hex(3)}",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            status=status,
            message=message,
            timestamp=now.isoformat(),
            context=dict(context or {}),
        )
        day = now.date()
        existing = self._read_day(day)
        logs = [entry.to_dict(), *existing][: self._max_entries]
        upsert(
            self._store,
            self._namespace,
            logs_key_for_day(day),
            {"logs": logs, "lastUpdated": now.isoformat(), "version": LOG_VERSION},
        )
        return entry

    def list_logs(
        self,
        days: int = 14,
        limit: int = 200,
        action: str | None = None,
        entity_type: str | None = None,
        status: str | None = None,
        text: str | None = None,
    ) -> list[AuditEntry]:
        today = self._clock().date()
        entries: list[AuditEntry] = []
        for offset in range(days):
            entries.extend(AuditEntry.from_dict(raw) for raw in self._read_day(today - timedelta(days=offset)))

        if action:
            entries = [entry for entry in entries if entry.action == action]
        if entity_type:
            entries = [entry for entry in entries if entry.entity_type == entity_type]
        if status:
            entries = [entry for entry in entries if entry.status == status]
        if text:
            needle = text.lower()
            entries = [
                entry
                for entry in entries
                if any(
                    needle in value.lower()
                    for value in (entry.message, entry.entity_name, entry.entity_id, entry.action)
                )
            ]
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries[:limit]

    def _read_day(self, day: date) -> list[dict[str, Any]]:
        try:
            document = self._store.get(self._namespace, logs_key_for_day(day))
        except DocumentNotFoundError:
            return []
        return list(document.get("logs") or [])
