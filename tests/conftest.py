"""Shared fixtures for litestar-expresso tests."""

from __future__ import annotations

import base64
import copy
from collections.abc import Iterator, Sequence
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
from litestar import Litestar
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.contrib.sqlalchemy.models import Base
from litestar_expresso.enums import (
    B2BShipmentStatus,
    ShipmentStatus,
    VolumeStatus,
)
from litestar_expresso.evidence import CapturedFile, EvidenceCapture
from litestar_expresso.exceptions import (
    ConcurrentUpdateError,
    PersistenceError,
    UploadFailureError,
)
from litestar_expresso.flow import B2BFlow, ShipmentFlow
from litestar_expresso.plugin import create_expresso_router
from litestar_expresso.session import SessionContext
from litestar_expresso.types import (
    HistoryEntry,
    OccurrenceRecord,
    VolumeSpec,
    VolumeUpdate,
)

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"
PNG = b"\x89PNG\r\n\x1a\nfake-png"


def photo(content: bytes = JPEG) -> CapturedFile:
    return CapturedFile(content=content, filename="photo.jpg")


def evidence(photos: int = 1, signature: bool = False) -> EvidenceCapture:
    return EvidenceCapture.from_files(
        photos=[photo() for _ in range(photos)],
        signature=(
            CapturedFile(content=PNG, content_type="image/png")
            if signature
            else None
        ),
    )


def b64(content: bytes = JPEG) -> str:
    return base64.b64encode(content).decode()


class InMemoryShipmentRepo:
    """ShipmentRepository double with compare-and-swap semantics."""

    def __init__(self) -> None:
        self.items: dict[str, SimpleNamespace] = {}
        self.history: list[HistoryEntry] = []
        self.occurrences: list[OccurrenceRecord] = []
        self.fail_writes = False
        self._counter = 0

    def seed(
        self,
        status: str = ShipmentStatus.PENDING_LABEL,
        motorista_id: str | None = None,
        **fields: Any,
    ) -> SimpleNamespace:
        self._counter += 1
        shipment = SimpleNamespace(
            id=f"s-{self._counter}",
            tracking_code=f"EXTEST{self._counter:06d}",
            status=str(status),
            motorista_id=motorista_id,
            price=Decimal("10.00"),
            billable_weight=Decimal("1.000"),
        )
        for key, value in fields.items():
            setattr(shipment, key, value)
        self.items[shipment.id] = shipment
        return shipment

    async def get_by_id(self, shipment_id: str) -> SimpleNamespace:
        return copy.copy(self.items[shipment_id])

    async def create(self, **kwargs) -> SimpleNamespace:
        status = kwargs.pop("status")
        shipment = self.seed(status=status, **kwargs)
        return copy.copy(shipment)

    async def transition(
        self,
        shipment_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields,
    ) -> SimpleNamespace:
        shipment = self.items[shipment_id]
        if self.fail_writes:
            raise PersistenceError("database unavailable")
        if shipment.status != str(expected_status):
            raise ConcurrentUpdateError(shipment_id, str(expected_status))
        shipment.status = str(new_status)
        for key, value in fields.items():
            setattr(shipment, key, value)
        self.history.append(history)
        self.occurrences.extend(occurrences)
        return copy.copy(shipment)

    async def list_history(self, shipment_id: str) -> list[HistoryEntry]:
        return [h for h in self.history if h.subject_id == shipment_id]

    async def list_occurrences(
        self, shipment_id: str
    ) -> list[OccurrenceRecord]:
        return [o for o in self.occurrences if o.subject_id == shipment_id]


class InMemoryB2BRepo:
    """B2BRepository double; a shipment transition applies all or nothing."""

    def __init__(self) -> None:
        self.shipments: dict[str, SimpleNamespace] = {}
        self.volumes: dict[str, SimpleNamespace] = {}
        self.history: list[HistoryEntry] = []
        self.occurrences: list[OccurrenceRecord] = []
        self.fail_writes = False
        self._counter = 0

    def seed(
        self,
        status: str = B2BShipmentStatus.PENDENTE,
        volume_statuses: Sequence[str] = (VolumeStatus.AGUARDANDO_ACEITE_COLETA,),
        motorista_id: str | None = None,
        eti_codes: Sequence[str | None] | None = None,
        volume_count: int | None = None,
        **volume_fields: Any,
    ) -> SimpleNamespace:
        self._counter += 1
        shipment = SimpleNamespace(
            id=f"b-{self._counter}",
            tracking_code=f"B2BTEST{self._counter:05d}",
            client_id="client-1",
            status=str(status),
            motorista_id=motorista_id,
            volume_count=(
                volume_count if volume_count is not None else len(volume_statuses)
            ),
            total_weight=Decimal(len(volume_statuses)),
        )
        self.shipments[shipment.id] = shipment
        for number, volume_status in enumerate(volume_statuses, start=1):
            eti = (
                eti_codes[number - 1]
                if eti_codes is not None
                else f"ETI-{len(self.volumes) + 1:04d}"
            )
            volume = SimpleNamespace(
                id=f"{shipment.id}-v{number}",
                shipment_id=shipment.id,
                volume_number=number,
                eti_code=eti,
                weight=Decimal(1),
                status=str(volume_status),
                recipient={},
                motorista_coleta_id=None,
                motorista_entrega_id=None,
                foto_entrega_url=None,
            )
            for key, value in volume_fields.items():
                setattr(volume, key, value)
            self.volumes[volume.id] = volume
        return shipment

    async def get_shipment(self, shipment_id: str) -> SimpleNamespace:
        return copy.copy(self.shipments[shipment_id])

    async def list_volumes(self, shipment_id: str) -> list[SimpleNamespace]:
        volumes = [
            copy.copy(v)
            for v in self.volumes.values()
            if v.shipment_id == shipment_id
        ]
        return sorted(volumes, key=lambda v: v.volume_number)

    async def get_volume(self, volume_id: str) -> SimpleNamespace:
        return copy.copy(self.volumes[volume_id])

    async def get_volume_by_eti(self, eti_code: str) -> SimpleNamespace | None:
        for volume in self.volumes.values():
            if (volume.eti_code or "").upper() == eti_code.upper():
                return copy.copy(volume)
        return None

    async def create_shipment(
        self, *, volumes: Sequence[VolumeSpec], **fields
    ) -> SimpleNamespace:
        shipment = self.seed(
            status=fields["status"],
            volume_statuses=[VolumeStatus.AGUARDANDO_ACEITE_COLETA]
            * len(volumes),
            eti_codes=[
                spec.eti_code or f"ETI-{len(self.volumes) + n:04d}"
                for n, spec in enumerate(volumes, start=1)
            ],
        )
        shipment.client_id = fields["client_id"]
        shipment.total_weight = fields["total_weight"]
        return copy.copy(shipment)

    def _check(self, record: SimpleNamespace, expected: str) -> None:
        if record.status != str(expected):
            raise ConcurrentUpdateError(record.id, str(expected))

    async def transition_shipment(
        self,
        shipment_id: str,
        *,
        expected_status: str,
        new_status: str,
        volume_updates: Sequence[VolumeUpdate] = (),
        history: Sequence[HistoryEntry] = (),
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields,
    ) -> SimpleNamespace:
        shipment = self.shipments[shipment_id]
        if self.fail_writes:
            raise PersistenceError("database unavailable")
        self._check(shipment, expected_status)
        for change in volume_updates:
            self._check(self.volumes[change.volume_id], change.expected_status)

        shipment.status = str(new_status)
        for key, value in fields.items():
            setattr(shipment, key, value)
        for change in volume_updates:
            volume = self.volumes[change.volume_id]
            volume.status = str(change.new_status)
            for key, value in change.fields.items():
                setattr(volume, key, value)
        self.history.extend(history)
        self.occurrences.extend(occurrences)
        return copy.copy(shipment)

    async def transition_volume(
        self,
        volume_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields,
    ) -> SimpleNamespace:
        volume = self.volumes[volume_id]
        if self.fail_writes:
            raise PersistenceError("database unavailable")
        self._check(volume, expected_status)
        volume.status = str(new_status)
        for key, value in fields.items():
            setattr(volume, key, value)
        self.history.append(history)
        self.occurrences.extend(occurrences)
        return copy.copy(volume)

    async def add_history(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    async def list_history(self, subject_kind, subject_id: str) -> list:
        return [
            h
            for h in self.history
            if h.subject_kind == subject_kind and h.subject_id == subject_id
        ]


class InMemoryStorage:
    """EvidenceStorage double that can be told to fail."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_after = fail_after
        self.fail_deletes = False

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        if self.fail_after is not None and len(self.uploaded) >= self.fail_after:
            raise UploadFailureError(f"storage rejected {path}")
        self.objects[path] = (content, content_type)
        self.uploaded.append(path)
        return f"https://storage.test/{path}"

    async def delete(self, path: str) -> None:
        if self.fail_deletes:
            raise UploadFailureError(f"cannot delete {path}")
        self.objects.pop(path, None)
        self.deleted.append(path)


class RecordingDispatcher:
    """Stands in for WebhookDispatcher; keeps dispatched payloads."""

    def __init__(self) -> None:
        self.events: list[dict] = []

    def dispatch(self, payload: dict) -> None:
        self.events.append(payload)


class RetryStore:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self._counter = 0

    async def store_failed_delivery(
        self,
        url: str,
        payload: dict,
        error: str,
    ) -> str:
        self._counter += 1
        retry_id = f"retry-{self._counter}"
        self.events.append(
            {
                "id": retry_id,
                "url": url,
                "payload": payload,
                "error": error,
            }
        )
        return retry_id

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        return []

    async def mark_succeeded(self, retry_id: str) -> None:
        pass

    async def mark_failed(self, retry_id: str, error: str) -> None:
        pass

    async def mark_exhausted(self, retry_id: str) -> None:
        pass


@pytest.fixture()
def repository() -> InMemoryShipmentRepo:
    return InMemoryShipmentRepo()


@pytest.fixture()
def b2b_repository() -> InMemoryB2BRepo:
    return InMemoryB2BRepo()


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def retry_store() -> RetryStore:
    return RetryStore()


@pytest.fixture()
def config() -> ExpressoConfig:
    return ExpressoConfig(webhook_urls=[], storage_url="")


@pytest.fixture()
def driver() -> SessionContext:
    return SessionContext.driver("m-1")


@pytest.fixture()
def admin() -> SessionContext:
    return SessionContext.admin("admin-1")


@pytest.fixture()
def shipment_flow(repository, storage, dispatcher) -> ShipmentFlow:
    return ShipmentFlow(repository, storage=storage, dispatcher=dispatcher)


@pytest.fixture()
def b2b_flow(b2b_repository, storage, dispatcher) -> B2BFlow:
    return B2BFlow(b2b_repository, storage=storage, dispatcher=dispatcher)


@pytest.fixture()
def test_app(
    repository: InMemoryShipmentRepo,
    b2b_repository: InMemoryB2BRepo,
    storage: InMemoryStorage,
    dispatcher: RecordingDispatcher,
    retry_store: RetryStore,
    config: ExpressoConfig,
) -> Litestar:
    router = create_expresso_router(
        config=config,
        repository=repository,
        b2b_repository=b2b_repository,
        storage=storage,
        retry_store=retry_store,
        dispatcher=dispatcher,
    )
    return Litestar(route_handlers=[router])


@pytest.fixture()
def client(test_app: Litestar) -> Iterator[TestClient]:
    with TestClient(app=test_app) as tc:
        yield tc


@pytest.fixture()
def driver_headers() -> dict[str, str]:
    return {"X-Actor-Id": "m-1", "X-Actor-Role": "motorista"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}


@pytest.fixture()
def make_evidence():
    return evidence


@pytest.fixture()
def photo_b64() -> str:
    return b64()


# ---------------------------------------------------------------------------
# SQLAlchemy fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
async def async_engine():
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    return async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture()
async def async_session(async_session_factory):
    async with async_session_factory() as session:
        yield session
