"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Any, Protocol


class DocumentNotFoundError(KeyError):
    """No document is stored under the requested namespace/key."""


class DocumentExistsError(Exception):
    """A document already exists under the namespace/key being created."""


class DocumentStore(Protocol):
    """Generic key-value JSON document store."""

    def get(self, namespace: str, key: str) -> dict[str, Any]:
        ...

    def create(self, namespace: str, key: str, document: dict[str, Any]) -> None:
        ...

    def update(self, namespace: str, key: str, document: dict[str, Any]) -> None:
        ...


class AuditTrail(Protocol):
    """Records application events."""

    def log_event(
        self,
        action: str,
        entity_type: str,
        entity_id: str = "",
        entity_name: str = "",
        status: str = "success",
        message: str = "",
        context: dict[str, Any] | None = None,
    ) -> Any:
        ...


def upsert(store: DocumentStore, namespace: str, key: str, document: dict[str, Any]) -> None:
    """Update the document, creating it when it does not exist yet."""
    try:
        store.update(namespace, key, document)
    except DocumentNotFoundError:
        store.create(namespace, key, document)
