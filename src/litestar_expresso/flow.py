"""Shipment and B2B volume lifecycle flows.

Every status change goes through the same steps: read the record, check the
transition, upload evidence (sequentially), then hand the status update, the
history row and the occurrence rows to the repository as one conditional
write keyed on the status that was read. A failed write removes the evidence
uploaded for it. Webhooks are dispatched only after the write succeeded and
are never awaited.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, TypeVar

from litestar_expresso.enums import (
    OBSERVATIONS_REQUIRED,
    OCCURRENCE_LABELS,
    OCCURRENCE_TARGETS,
    ActorRole,
    B2BShipmentStatus,
    EvidenceKind,
    OccurrenceType,
    Phase,
    ShipmentStatus,
    ShipmentType,
    SubjectKind,
    VolumeStatus,
    status_label,
)
from litestar_expresso.evidence import EvidenceCapture, UploadedEvidence, object_name
from litestar_expresso.exceptions import (
    ConfigurationError,
    DriverNotAssignedError,
    EvidenceRequiredError,
    InvalidStateError,
    ObservationsRequiredError,
    ShipmentNotFoundError,
    TransitionInProgressError,
    UploadFailureError,
    ValidationIncompleteError,
)
from litestar_expresso.phases import aggregate_status, classify_phase
from litestar_expresso.protocols import (
    B2BRepository,
    EvidenceStorage,
    ShipmentRepository,
)
from litestar_expresso.session import SessionContext
from litestar_expresso.transitions import (
    B2B_SHIPMENT_TRANSITIONS,
    COLLECTION_PENDING,
    FINALIZABLE,
    OCCURRENCE_STATES,
    PICKUP_ACCEPTABLE,
    PRE_ROUTE,
    SHIPMENT_TRANSITIONS,
    VOLUME_TRANSITIONS,
    ensure_transition,
)
from litestar_expresso.types import (
    HistoryEntry,
    OccurrenceRecord,
    Quote,
    VolumeSpec,
    VolumeUpdate,
)
from litestar_expresso.validation import (
    CodeValidator,
    fallback_eti_codes,
    normalize_eti_code,
)
from litestar_expresso.webhooks import WebhookDispatcher, build_status_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRACKING_ALPHABET = string.ascii_uppercase + string.digits
BACK_OFFICE = (ActorRole.ADMIN, ActorRole.CD)


def generate_tracking_code(prefix: str = "EX", length: int = 10) -> str:
    """Random alphanumeric tracking code, e.g. ``EX7K2Q9ZB41M``."""
    body = "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(length))
    return f"{prefix}{body}"


@dataclass(frozen=True)
class OccurrenceInput:
    """An occurrence as submitted by a driver."""

    type: OccurrenceType
    observations: str = ""

    @property
    def description(self) -> str:
        return OCCURRENCE_LABELS[self.type]

    @property
    def new_status(self) -> ShipmentStatus:
        return OCCURRENCE_TARGETS[self.type]


@dataclass(frozen=True)
class B2BShipmentView:
    """A B2B shipment as read: stored fields, volumes and derived status."""

    shipment: Any
    volumes: list[Any]
    status: str

    @property
    def stored_status(self) -> str:
        return str(self.shipment.status)


class InFlightGuard:
    """Rejects a second transition on a record while one is running."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._active

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        if key in self._active:
            raise TransitionInProgressError(key)
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


async def upload_evidence(
    storage: EvidenceStorage | None,
    subject_id: str,
    evidence: EvidenceCapture | None,
) -> list[UploadedEvidence]:
    """Upload photos, then the signature, one at a time.

    If any upload fails the ones already stored are removed and
    UploadFailureError is raised.
    """
    if evidence is None or len(evidence) == 0:
        return []
    if storage is None:
        raise ConfigurationError("Evidence storage not configured")

    files = [(EvidenceKind.FOTO, "photo", photo) for photo in evidence.photos]
    if evidence.signature is not None:
        files.append((EvidenceKind.ASSINATURA, "signature", evidence.signature))

    uploaded: list[UploadedEvidence] = []
    try:
        for kind, prefix, captured in files:
            path = object_name(subject_id, prefix, captured.extension)
            try:
                url = await storage.upload(
                    path, captured.content, captured.content_type
                )
            except Exception as exc:
                await discard_uploads(storage, uploaded)
                if isinstance(exc, UploadFailureError):
                    raise
                raise UploadFailureError(
                    f"Upload of {path!r} failed: {exc}"
                ) from exc
            uploaded.append(UploadedEvidence(kind=kind, path=path, url=url))
    finally:
        evidence.release_previews()
    return uploaded


async def discard_uploads(
    storage: EvidenceStorage | None, uploaded: Sequence[UploadedEvidence]
) -> None:
    """Remove evidence whose transition did not commit."""
    if storage is None:
        return
    for item in uploaded:
        try:
            await storage.delete(item.path)
        except Exception:
            logger.error(
                "Orphaned evidence %s could not be removed; reconcile manually",
                item.path,
                exc_info=True,
            )
        else:
            logger.warning("Removed evidence %s of a failed transition", item.path)


class _LifecycleFlow:
    subject_kind: SubjectKind

    def __init__(
        self,
        *,
        storage: EvidenceStorage | None = None,
        dispatcher: WebhookDispatcher | None = None,
        guard: InFlightGuard | None = None,
    ) -> None:
        self.storage = storage
        self.dispatcher = dispatcher
        self.guard = guard or InFlightGuard()

    async def _commit(
        self,
        subject_id: str,
        uploaded: Sequence[UploadedEvidence],
        write: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await write()
        except Exception as exc:
            await discard_uploads(self.storage, uploaded)
            if isinstance(exc, KeyError):
                raise ShipmentNotFoundError(subject_id) from exc
            raise

    def _notify(
        self, subject: SubjectKind, record: Any, previous_status: str | None
    ) -> None:
        logger.info(
            "%s %s: %s -> %s",
            subject,
            record.id,
            previous_status,
            record.status,
        )
        if self.dispatcher is not None:
            self.dispatcher.dispatch(
                build_status_event(subject, record, previous_status)
            )

    @staticmethod
    def _ensure_driver(
        record: Any, ctx: SessionContext, attribute: str = "motorista_id"
    ) -> str:
        assigned = getattr(record, attribute, None)
        if not assigned:
            raise DriverNotAssignedError(str(record.id))
        if not ctx.is_admin and assigned != ctx.actor_id:
            raise DriverNotAssignedError(
                str(record.id),
                f"{str(record.id)!r} is assigned to another driver",
            )
        return assigned


class ShipmentFlow(_LifecycleFlow):
    """State machine for regular (non-B2B) shipments."""

    subject_kind = SubjectKind.SHIPMENT

    def __init__(
        self,
        repository: ShipmentRepository,
        *,
        storage: EvidenceStorage | None = None,
        dispatcher: WebhookDispatcher | None = None,
        guard: InFlightGuard | None = None,
        cubic_meter_kg_equivalent: Decimal | None = None,
    ) -> None:
        super().__init__(storage=storage, dispatcher=dispatcher, guard=guard)
        self.repository = repository
        self.cubic_meter_kg_equivalent = cubic_meter_kg_equivalent

    async def get_shipment(self, shipment_id: str) -> Any:
        try:
            return await self.repository.get_by_id(shipment_id)
        except KeyError as exc:
            raise ShipmentNotFoundError(shipment_id) from exc

    async def get_history(self, shipment_id: str) -> list[Any]:
        await self.get_shipment(shipment_id)
        return await self.repository.list_history(shipment_id)

    async def get_occurrences(self, shipment_id: str) -> list[Any]:
        await self.get_shipment(shipment_id)
        return await self.repository.list_occurrences(shipment_id)

    async def create_shipment(
        self,
        quote: Quote,
        ctx: SessionContext,
        *,
        tracking_code: str | None = None,
    ) -> Any:
        """Promote a checked-out quote to a shipment awaiting its label."""
        user_id, session_id = ctx.owner_reference()
        if user_id is None and session_id is None:
            raise ConfigurationError(
                "A shipment needs an owning user or anonymous session"
            )
        package = quote.package
        shipment = await self.repository.create(
            tracking_code=tracking_code or generate_tracking_code(),
            status=ShipmentStatus.PENDING_LABEL,
            user_id=user_id,
            session_id=session_id,
            sender_address=quote.sender.as_dict(),
            recipient_address=quote.recipient.as_dict(),
            weight=package.weight,
            length=package.length,
            width=package.width,
            height=package.height,
            format=package.format,
            billable_weight=quote.billable_weight(
                self.cubic_meter_kg_equivalent
            ),
            service_option=quote.service_option,
            pickup_option=quote.pickup_option,
            price=quote.price,
            document_data=dict(quote.document_data),
        )
        logger.info(
            "Shipment %s created with tracking code %s",
            shipment.id,
            shipment.tracking_code,
        )
        return shipment

    async def accept_pickup(self, shipment_id: str, ctx: SessionContext) -> Any:
        """Driver accepts a pickup; only from PENDING_LABEL/LABEL_GENERATED."""
        motorista_id = ctx.require_actor()
        target = ShipmentStatus.COLETA_ACEITA
        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            if current not in PICKUP_ACCEPTABLE:
                raise InvalidStateError(shipment_id, current, target)
            if shipment.motorista_id and shipment.motorista_id != motorista_id:
                raise InvalidStateError(
                    shipment_id,
                    current,
                    target,
                    message=f"{shipment_id!r} was accepted by another driver",
                )
            history = HistoryEntry(
                subject_kind=SubjectKind.SHIPMENT,
                subject_id=shipment_id,
                status=target,
                motorista_id=motorista_id,
                description=status_label(target),
            )
            updated = await self._commit(
                shipment_id,
                (),
                lambda: self.repository.transition(
                    shipment_id,
                    expected_status=current,
                    new_status=target,
                    history=history,
                    motorista_id=motorista_id,
                ),
            )
        self._notify(SubjectKind.SHIPMENT, updated, current)
        return updated

    async def register_occurrence(
        self,
        shipment_id: str,
        occurrence: OccurrenceInput,
        ctx: SessionContext,
        evidence: EvidenceCapture | None = None,
    ) -> Any:
        """Record a driver occurrence and move the shipment to its status."""
        observations = (occurrence.observations or "").strip()
        if occurrence.type in OBSERVATIONS_REQUIRED and not observations:
            raise ObservationsRequiredError(occurrence.type)
        ctx.require_actor()
        target = occurrence.new_status

        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            motorista_id = self._ensure_driver(shipment, ctx)
            if current not in OCCURRENCE_STATES:
                raise InvalidStateError(shipment_id, current, target)
            ensure_transition(SHIPMENT_TRANSITIONS, shipment_id, current, target)

            uploaded = await upload_evidence(self.storage, shipment_id, evidence)
            now = datetime.now(tz=UTC)
            occurrences = [
                OccurrenceRecord(
                    subject_kind=SubjectKind.SHIPMENT,
                    subject_id=shipment_id,
                    occurrence_type=occurrence.type,
                    motorista_id=motorista_id,
                    description=occurrence.description,
                    observations=observations or None,
                    target_status=target,
                    created_at=now,
                )
            ]
            occurrences.extend(
                OccurrenceRecord(
                    subject_kind=SubjectKind.SHIPMENT,
                    subject_id=shipment_id,
                    occurrence_type=item.kind,
                    motorista_id=motorista_id,
                    description=occurrence.description,
                    observations=observations or None,
                    file_url=item.url,
                    created_at=now,
                )
                for item in uploaded
            )
            history = HistoryEntry(
                subject_kind=SubjectKind.SHIPMENT,
                subject_id=shipment_id,
                status=target,
                motorista_id=motorista_id,
                description=occurrence.description,
                observations=observations or None,
                occurrence_data={
                    "type": str(occurrence.type),
                    "description": occurrence.description,
                    "timestamp": now.isoformat(),
                },
                created_at=now,
            )
            updated = await self._commit(
                shipment_id,
                uploaded,
                lambda: self.repository.transition(
                    shipment_id,
                    expected_status=current,
                    new_status=target,
                    history=history,
                    occurrences=occurrences,
                ),
            )
        self._notify(SubjectKind.SHIPMENT, updated, current)
        return updated

    async def finalize_delivery(
        self,
        shipment_id: str,
        evidence: EvidenceCapture | None,
        ctx: SessionContext,
        observations: str | None = None,
    ) -> Any:
        """Close a delivery with photo evidence."""
        if evidence is None or not evidence.has_photo:
            raise EvidenceRequiredError()
        ctx.require_actor()
        target = ShipmentStatus.ENTREGA_FINALIZADA

        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            if current not in FINALIZABLE:
                raise InvalidStateError(shipment_id, current, target)
            motorista_id = self._ensure_driver(shipment, ctx)

            uploaded = await upload_evidence(self.storage, shipment_id, evidence)
            occurrences = [
                OccurrenceRecord(
                    subject_kind=SubjectKind.SHIPMENT,
                    subject_id=shipment_id,
                    occurrence_type=(
                        EvidenceKind.ENTREGA_FINALIZADA
                        if item.kind == EvidenceKind.FOTO
                        else item.kind
                    ),
                    motorista_id=motorista_id,
                    description=status_label(target),
                    observations=observations,
                    target_status=target,
                    file_url=item.url,
                )
                for item in uploaded
            ]
            history = HistoryEntry(
                subject_kind=SubjectKind.SHIPMENT,
                subject_id=shipment_id,
                status=target,
                motorista_id=motorista_id,
                description=status_label(target),
                observations=observations,
            )
            updated = await self._commit(
                shipment_id,
                uploaded,
                lambda: self.repository.transition(
                    shipment_id,
                    expected_status=current,
                    new_status=target,
                    history=history,
                    occurrences=occurrences,
                ),
            )
        self._notify(SubjectKind.SHIPMENT, updated, current)
        return updated

    async def set_status(
        self,
        shipment_id: str,
        target: ShipmentStatus,
        ctx: SessionContext,
        description: str | None = None,
        observations: str | None = None,
    ) -> Any:
        """Back-office transition (label, document, payment, resolution)."""
        actor_id = ctx.require_role(*BACK_OFFICE)
        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            ensure_transition(SHIPMENT_TRANSITIONS, shipment_id, current, target)
            history = HistoryEntry(
                subject_kind=SubjectKind.SHIPMENT,
                subject_id=shipment_id,
                status=target,
                motorista_id=shipment.motorista_id,
                description=description or status_label(target),
                observations=observations,
                occurrence_data={"changed_by": actor_id},
            )
            updated = await self._commit(
                shipment_id,
                (),
                lambda: self.repository.transition(
                    shipment_id,
                    expected_status=current,
                    new_status=target,
                    history=history,
                ),
            )
        self._notify(SubjectKind.SHIPMENT, updated, current)
        return updated


class B2BFlow(_LifecycleFlow):
    """State machine for B2B express shipments and their volumes."""

    subject_kind = SubjectKind.B2B_SHIPMENT

    def __init__(
        self,
        repository: B2BRepository,
        *,
        storage: EvidenceStorage | None = None,
        dispatcher: WebhookDispatcher | None = None,
        guard: InFlightGuard | None = None,
    ) -> None:
        super().__init__(storage=storage, dispatcher=dispatcher, guard=guard)
        self.repository = repository

    # -- reads ---------------------------------------------------------

    async def get_shipment(self, shipment_id: str) -> Any:
        try:
            return await self.repository.get_shipment(shipment_id)
        except KeyError as exc:
            raise ShipmentNotFoundError(shipment_id) from exc

    async def get_volume(self, volume_id: str) -> Any:
        try:
            return await self.repository.get_volume(volume_id)
        except KeyError as exc:
            raise ShipmentNotFoundError(volume_id) from exc

    async def get_shipment_view(self, shipment_id: str) -> B2BShipmentView:
        """Shipment with volumes; the status is recomputed on every read."""
        shipment = await self.get_shipment(shipment_id)
        volumes = await self.repository.list_volumes(shipment_id)
        return B2BShipmentView(
            shipment=shipment,
            volumes=volumes,
            status=aggregate_status(
                str(shipment.status), (str(v.status) for v in volumes)
            ),
        )

    async def get_history(self, shipment_id: str) -> list[Any]:
        await self.get_shipment(shipment_id)
        return await self.repository.list_history(
            SubjectKind.B2B_SHIPMENT, shipment_id
        )

    async def get_volume_history(self, volume_id: str) -> list[Any]:
        await self.get_volume(volume_id)
        return await self.repository.list_history(
            SubjectKind.B2B_VOLUME, volume_id
        )

    async def find_volume_by_eti(self, code: str) -> Any:
        eti_code = normalize_eti_code(code)
        volume = await self.repository.get_volume_by_eti(eti_code)
        if volume is None:
            raise ShipmentNotFoundError(eti_code)
        return volume

    @staticmethod
    def _codes_for(shipment: Any, volumes: Sequence[Any]) -> list[str]:
        codes = [v.eti_code for v in volumes if v.eti_code]
        if codes:
            return codes
        return fallback_eti_codes(shipment.volume_count or len(volumes))

    async def required_codes(self, shipment_id: str) -> list[str]:
        """ETI codes a driver must scan, with placeholders when unlabeled."""
        shipment = await self.get_shipment(shipment_id)
        volumes = await self.repository.list_volumes(shipment_id)
        return self._codes_for(shipment, volumes)

    async def start_validation(
        self,
        shipment_id: str,
        on_complete: Callable[[Any | None], None] | None = None,
    ) -> CodeValidator:
        return CodeValidator(
            await self.required_codes(shipment_id), on_complete=on_complete
        )

    # -- shipment transitions ------------------------------------------

    async def create_shipment(
        self,
        ctx: SessionContext,
        *,
        volumes: Sequence[VolumeSpec],
        client_id: str | None = None,
        delivery_date: date | None = None,
        observations: str | None = None,
    ) -> Any:
        """Register a B2B order; every volume starts awaiting collection."""
        client_id = client_id or ctx.require_actor()
        shipment = await self.repository.create_shipment(
            volumes=volumes,
            tracking_code=generate_tracking_code("B2B"),
            client_id=client_id,
            status=B2BShipmentStatus.PENDENTE,
            volume_count=len(volumes),
            total_weight=sum((v.weight for v in volumes), Decimal(0)),
            delivery_date=delivery_date,
            observations=observations,
        )
        logger.info(
            "B2B shipment %s created with %d volumes",
            shipment.id,
            len(volumes),
        )
        return shipment

    async def _move_shipment(
        self,
        shipment: Any,
        target: B2BShipmentStatus,
        *,
        volume_targets: Callable[[str], str | None],
        driver_id: str | None,
        description: str,
        uploaded: Sequence[UploadedEvidence] = (),
        occurrences: Sequence[OccurrenceRecord] = (),
        volume_fields: dict[str, Any] | None = None,
        **fields: Any,
    ) -> Any:
        shipment_id = str(shipment.id)
        current = str(shipment.status)
        volumes = await self.repository.list_volumes(shipment_id)
        now = datetime.now(tz=UTC)

        updates: list[VolumeUpdate] = []
        history = [
            HistoryEntry(
                subject_kind=SubjectKind.B2B_SHIPMENT,
                subject_id=shipment_id,
                status=target,
                motorista_id=driver_id,
                description=description,
                created_at=now,
            )
        ]
        for volume in volumes:
            volume_status = str(volume.status)
            volume_target = volume_targets(volume_status)
            if volume_target is None:
                continue
            updates.append(
                VolumeUpdate(
                    volume_id=str(volume.id),
                    expected_status=volume_status,
                    new_status=volume_target,
                    fields=dict(volume_fields or {}),
                )
            )
            history.append(
                HistoryEntry(
                    subject_kind=SubjectKind.B2B_VOLUME,
                    subject_id=str(volume.id),
                    status=volume_target,
                    motorista_id=driver_id,
                    description=description,
                    created_at=now,
                )
            )

        updated = await self._commit(
            shipment_id,
            uploaded,
            lambda: self.repository.transition_shipment(
                shipment_id,
                expected_status=current,
                new_status=target,
                volume_updates=updates,
                history=history,
                occurrences=occurrences,
                **fields,
            ),
        )
        self._notify(SubjectKind.B2B_SHIPMENT, updated, current)
        return updated

    async def accept_coleta(self, shipment_id: str, ctx: SessionContext) -> Any:
        """Collection driver takes the shipment."""
        motorista_id = ctx.require_actor()
        target = B2BShipmentStatus.ACEITA
        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            ensure_transition(
                B2B_SHIPMENT_TRANSITIONS, shipment_id, str(shipment.status), target
            )
            return await self._move_shipment(
                shipment,
                target,
                volume_targets=lambda s: (
                    VolumeStatus.COLETA_ACEITA
                    if s == VolumeStatus.AGUARDANDO_ACEITE_COLETA
                    else None
                ),
                driver_id=motorista_id,
                description="Coleta aceita",
                volume_fields={"motorista_coleta_id": motorista_id},
                motorista_id=motorista_id,
            )

    async def accept_entrega(self, shipment_id: str, ctx: SessionContext) -> Any:
        """Delivery driver takes a shipment released after collection."""
        motorista_id = ctx.require_actor()
        target = B2BShipmentStatus.B2B_ENTREGA_ACEITA
        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            ensure_transition(B2B_SHIPMENT_TRANSITIONS, shipment_id, current, target)
            if shipment.motorista_id:
                raise InvalidStateError(
                    shipment_id,
                    current,
                    target,
                    message=f"{shipment_id!r} is still assigned to a driver",
                )
            return await self._move_shipment(
                shipment,
                target,
                volume_targets=lambda s: (
                    VolumeStatus.EM_ROTA if s in PRE_ROUTE else None
                ),
                driver_id=motorista_id,
                description="Entrega aceita",
                volume_fields={"motorista_entrega_id": motorista_id},
                motorista_id=motorista_id,
            )

    async def finalize_coleta_ou_entrega(
        self,
        shipment_id: str,
        scanned_codes: Sequence[str],
        evidence: EvidenceCapture | None,
        ctx: SessionContext,
        shipment_type: ShipmentType | str | None = None,
    ) -> Any:
        """Finalize the collection or the delivery of a B2B shipment.

        Delivery needs at least one photo; both need every volume code
        validated. Collection releases the driver so a different one can
        accept the delivery.
        """
        ctx.require_actor()
        async with self.guard.hold(shipment_id):
            shipment = await self.get_shipment(shipment_id)
            current = str(shipment.status)
            phase = classify_phase(shipment_type, current, is_b2b=True)
            if phase is Phase.NONE:
                raise InvalidStateError(
                    shipment_id,
                    current,
                    message=(
                        f"{shipment_id!r} is not in a collection or "
                        "delivery phase"
                    ),
                )
            if phase is Phase.ENTREGA and (
                evidence is None or not evidence.has_photo
            ):
                raise EvidenceRequiredError("A delivery photo is required")

            volumes = await self.repository.list_volumes(shipment_id)
            validator = CodeValidator(self._codes_for(shipment, volumes))
            validator.submit_all(scanned_codes)
            if not validator.is_complete:
                raise ValidationIncompleteError(
                    validator.validated_count, validator.required_count
                )

            if phase is Phase.COLETA:
                target = B2BShipmentStatus.B2B_COLETA_FINALIZADA
                kind = EvidenceKind.COLETA_FINALIZADA
                description = "Coleta finalizada"

                def volume_target(status: str) -> str | None:
                    if status in COLLECTION_PENDING:
                        return VolumeStatus.COLETADO
                    return None

                fields: dict[str, Any] = {"motorista_id": None}
            else:
                target = B2BShipmentStatus.ENTREGUE
                kind = EvidenceKind.ENTREGA_FINALIZADA
                description = "Entrega finalizada"

                def volume_target(status: str) -> str | None:
                    if status == VolumeStatus.EM_ROTA:
                        return VolumeStatus.ENTREGUE
                    return None

                fields = {}

            ensure_transition(B2B_SHIPMENT_TRANSITIONS, shipment_id, current, target)
            motorista_id = self._ensure_driver(shipment, ctx)

            uploaded = await upload_evidence(self.storage, shipment_id, evidence)
            occurrences = [
                OccurrenceRecord(
                    subject_kind=SubjectKind.B2B_SHIPMENT,
                    subject_id=shipment_id,
                    occurrence_type=(
                        kind if item.kind == EvidenceKind.FOTO else item.kind
                    ),
                    motorista_id=motorista_id,
                    description=description,
                    target_status=target,
                    file_url=item.url,
                )
                for item in uploaded
            ]
            return await self._move_shipment(
                shipment,
                target,
                volume_targets=volume_target,
                driver_id=motorista_id,
                description=description,
                uploaded=uploaded,
                occurrences=occurrences,
                **fields,
            )

    # -- volume transitions --------------------------------------------

    async def _move_volume(
        self,
        volume: Any,
        target: VolumeStatus,
        *,
        motorista_id: str | None,
        description: str,
        observations: str | None = None,
        uploaded: Sequence[UploadedEvidence] = (),
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields: Any,
    ) -> Any:
        volume_id = str(volume.id)
        current = str(volume.status)
        history = HistoryEntry(
            subject_kind=SubjectKind.B2B_VOLUME,
            subject_id=volume_id,
            status=target,
            motorista_id=motorista_id,
            description=description,
            observations=observations,
        )
        updated = await self._commit(
            volume_id,
            uploaded,
            lambda: self.repository.transition_volume(
                volume_id,
                expected_status=current,
                new_status=target,
                history=history,
                occurrences=occurrences,
                **fields,
            ),
        )
        self._notify(SubjectKind.B2B_VOLUME, updated, current)
        return updated

    async def accept_volume_for_coleta(
        self, volume_id: str, ctx: SessionContext
    ) -> Any:
        motorista_id = ctx.require_actor()
        target = VolumeStatus.COLETA_ACEITA
        async with self.guard.hold(volume_id):
            volume = await self.get_volume(volume_id)
            current = str(volume.status)
            if current != VolumeStatus.AGUARDANDO_ACEITE_COLETA or (
                volume.motorista_coleta_id
            ):
                raise InvalidStateError(volume_id, current, target)
            return await self._move_volume(
                volume,
                target,
                motorista_id=motorista_id,
                description="Volume aceito para coleta",
                motorista_coleta_id=motorista_id,
            )

    async def accept_volume_for_entrega(
        self, volume_id: str, ctx: SessionContext
    ) -> Any:
        motorista_id = ctx.require_actor()
        target = VolumeStatus.EM_ROTA
        async with self.guard.hold(volume_id):
            volume = await self.get_volume(volume_id)
            current = str(volume.status)
            if current not in PRE_ROUTE:
                raise InvalidStateError(volume_id, current, target)
            ensure_transition(VOLUME_TRANSITIONS, volume_id, current, target)
            return await self._move_volume(
                volume,
                target,
                motorista_id=motorista_id,
                description="Volume aceito para entrega",
                motorista_entrega_id=motorista_id,
            )

    async def finalize_volume_delivery(
        self,
        volume_id: str,
        evidence: EvidenceCapture | None,
        ctx: SessionContext,
    ) -> Any:
        """Deliver a single volume with photo proof."""
        if evidence is None or not evidence.has_photo:
            raise EvidenceRequiredError("A delivery photo is required")
        ctx.require_actor()
        target = VolumeStatus.ENTREGUE
        async with self.guard.hold(volume_id):
            volume = await self.get_volume(volume_id)
            current = str(volume.status)
            ensure_transition(VOLUME_TRANSITIONS, volume_id, current, target)
            motorista_id = self._ensure_driver(
                volume, ctx, attribute="motorista_entrega_id"
            )
            uploaded = await upload_evidence(self.storage, volume_id, evidence)
            occurrences = [
                OccurrenceRecord(
                    subject_kind=SubjectKind.B2B_VOLUME,
                    subject_id=volume_id,
                    occurrence_type=(
                        EvidenceKind.ENTREGA_FINALIZADA
                        if item.kind == EvidenceKind.FOTO
                        else item.kind
                    ),
                    motorista_id=motorista_id,
                    description="Entrega finalizada com comprovante",
                    target_status=target,
                    file_url=item.url,
                )
                for item in uploaded
            ]
            photo_urls = [
                item.url for item in uploaded if item.kind == EvidenceKind.FOTO
            ]
            return await self._move_volume(
                volume,
                target,
                motorista_id=motorista_id,
                description="Entrega finalizada com comprovante",
                uploaded=uploaded,
                occurrences=occurrences,
                foto_entrega_url=photo_urls[0],
            )

    async def advance_volume(
        self,
        volume_id: str,
        target: VolumeStatus,
        ctx: SessionContext,
        observations: str | None = None,
    ) -> Any:
        """Distribution-center or admin move along the volume table."""
        ctx.require_role(*BACK_OFFICE)
        async with self.guard.hold(volume_id):
            volume = await self.get_volume(volume_id)
            ensure_transition(
                VOLUME_TRANSITIONS, volume_id, str(volume.status), target
            )
            return await self._move_volume(
                volume,
                target,
                motorista_id=None,
                description=status_label(target),
                observations=observations,
            )

    async def register_volume_occurrence(
        self,
        volume_id: str,
        occurrence_type: str,
        ctx: SessionContext,
        observations: str | None = None,
    ) -> HistoryEntry:
        """Flag a volume with an alert; its status is left unchanged."""
        observations = (observations or "").strip()
        if occurrence_type in OBSERVATIONS_REQUIRED and not observations:
            raise ObservationsRequiredError(occurrence_type)
        motorista_id = ctx.require_actor()
        volume = await self.get_volume(volume_id)
        entry = HistoryEntry(
            subject_kind=SubjectKind.B2B_VOLUME,
            subject_id=str(volume.id),
            status="OCORRENCIA",
            motorista_id=motorista_id,
            description=occurrence_type,
            observations=(
                f"{occurrence_type}: {observations}"
                if observations
                else occurrence_type
            ),
            is_alert=True,
        )
        await self.repository.add_history(entry)
        logger.warning(
            "Occurrence %s registered on volume %s", occurrence_type, volume_id
        )
        return entry
