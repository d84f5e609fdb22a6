"""Protocols for the collaborators the lifecycle flows depend on."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from litestar_expresso.enums import SubjectKind
from litestar_expresso.types import (
    HistoryEntry,
    OccurrenceRecord,
    VolumeSpec,
    VolumeUpdate,
)

__all__ = [
    "B2BRepository",
    "EvidenceStorage",
    "ShipmentRepository",
    "WebhookRetryStore",
]


@runtime_checkable
class ShipmentRepository(Protocol):
    """Persistence for regular shipments and their audit rows.

    ``transition`` is the only write path for status changes: it performs a
    compare-and-swap on ``expected_status`` and writes the status, history
    and occurrence rows as one unit.
    """

    async def get_by_id(self, shipment_id: str) -> Any:
        """Get a shipment by ID. Raises KeyError if not found."""
        ...

    async def create(self, **kwargs: Any) -> Any:
        """Create a new shipment record."""
        ...

    async def transition(
        self,
        shipment_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields: Any,
    ) -> Any:
        """Conditionally move a shipment to ``new_status``.

        Raises ConcurrentUpdateError when the stored status is no longer
        ``expected_status`` and PersistenceError on storage failures.
        """
        ...

    async def list_history(self, shipment_id: str) -> list[Any]:
        ...

    async def list_occurrences(self, shipment_id: str) -> list[Any]:
        ...


@runtime_checkable
class B2BRepository(Protocol):
    """Persistence for B2B shipments, their volumes and audit rows."""

    async def get_shipment(self, shipment_id: str) -> Any:
        """Get a B2B shipment by ID. Raises KeyError if not found."""
        ...

    async def list_volumes(self, shipment_id: str) -> list[Any]:
        """Volumes of a shipment ordered by volume number."""
        ...

    async def get_volume(self, volume_id: str) -> Any:
        """Get a volume by ID. Raises KeyError if not found."""
        ...

    async def get_volume_by_eti(self, eti_code: str) -> Any | None:
        ...

    async def create_shipment(
        self, *, volumes: Sequence[VolumeSpec], **fields: Any
    ) -> Any:
        ...

    async def transition_shipment(
        self,
        shipment_id: str,
        *,
        expected_status: str,
        new_status: str,
        volume_updates: Sequence[VolumeUpdate] = (),
        history: Sequence[HistoryEntry] = (),
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields: Any,
    ) -> Any:
        """Conditionally move a shipment and its volumes in one unit."""
        ...

    async def transition_volume(
        self,
        volume_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields: Any,
    ) -> Any:
        ...

    async def add_history(self, entry: HistoryEntry) -> None:
        ...

    async def list_history(
        self, subject_kind: SubjectKind, subject_id: str
    ) -> list[Any]:
        ...


@runtime_checkable
class EvidenceStorage(Protocol):
    """Object storage for photo and signature blobs."""

    async def upload(
        self, path: str, content: bytes, content_type: str
    ) -> str:
        """Store ``content`` at ``path`` and return its public URL."""
        ...

    async def delete(self, path: str) -> None:
        ...


@runtime_checkable
class WebhookRetryStore(Protocol):
    """Storage abstraction for the webhook retry queue.

    Full lifecycle: store -> get_due ->
    mark_succeeded / mark_failed / mark_exhausted.
    """

    async def store_failed_delivery(
        self,
        url: str,
        payload: dict,
        error: str,
    ) -> str:
        """Store a failed webhook delivery for later retry. Returns retry ID."""
        ...

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        """Get retries that are due for processing."""
        ...

    async def mark_succeeded(self, retry_id: str) -> None:
        """Mark a retry as successfully processed."""
        ...

    async def mark_failed(self, retry_id: str, error: str) -> None:
        """Mark a retry as failed and schedule next attempt."""
        ...

    async def mark_exhausted(self, retry_id: str) -> None:
        """Mark a retry as exhausted (dead letter)."""
        ...
