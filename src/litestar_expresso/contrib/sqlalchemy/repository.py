"""SQLAlchemy 2.0 async repositories for shipments and B2B volumes.

Status changes are compare-and-swap updates (``UPDATE ... WHERE id = :id AND
status = :expected``) issued together with their history and occurrence rows
inside one transaction.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from litestar_expresso.contrib.sqlalchemy.models import (
    AddressModel,
    B2BShipmentModel,
    B2BVolumeModel,
    Base,
    OccurrenceModel,
    ShipmentModel,
    StatusHistoryModel,
)
from litestar_expresso.enums import SubjectKind, VolumeStatus
from litestar_expresso.exceptions import ConcurrentUpdateError, PersistenceError
from litestar_expresso.types import (
    Address,
    HistoryEntry,
    OccurrenceRecord,
    VolumeSpec,
    VolumeUpdate,
)
from litestar_expresso.validation import ETI_PREFIX

logger = logging.getLogger(__name__)

_ETI_NUMBER = re.compile(rf"^{ETI_PREFIX}(\d+)$", re.IGNORECASE)
# attempts at creating a B2B shipment when generated ETI codes collide
ETI_CREATE_ATTEMPTS = 3


def _history_row(entry: HistoryEntry) -> StatusHistoryModel:
    return StatusHistoryModel(
        subject_kind=str(entry.subject_kind),
        subject_id=entry.subject_id,
        status=str(entry.status),
        motorista_id=entry.motorista_id,
        description=entry.description,
        observations=entry.observations,
        occurrence_data=entry.occurrence_data,
        is_alert=entry.is_alert,
        created_at=entry.created_at,
    )


def _occurrence_row(record: OccurrenceRecord) -> OccurrenceModel:
    return OccurrenceModel(
        subject_kind=str(record.subject_kind),
        subject_id=record.subject_id,
        occurrence_type=str(record.occurrence_type),
        motorista_id=record.motorista_id,
        description=record.description,
        observations=record.observations,
        target_status=(
            str(record.target_status) if record.target_status else None
        ),
        file_url=record.file_url,
        created_at=record.created_at,
    )


def _columns(model: type[Base], fields: dict[str, Any]) -> dict[str, Any]:
    columns = model.__table__.c
    return {key: value for key, value in fields.items() if key in columns}


async def _compare_and_swap(
    session: AsyncSession,
    model: type[Base],
    record_id: str,
    expected_status: str,
    values: dict[str, Any],
) -> None:
    """Update ``record_id`` only if its status is still ``expected_status``.

    Raises KeyError if the row does not exist and ConcurrentUpdateError if its
    status changed since it was read.
    """
    stmt = (
        update(model)
        .where(model.id == record_id)
        .where(model.status == str(expected_status))
        .values(**_columns(model, values))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 1:
        return
    if await session.get(model, record_id) is None:
        raise KeyError(record_id)
    raise ConcurrentUpdateError(record_id, str(expected_status))


async def _unused_eti_codes(
    session: AsyncSession, count: int, reserved: set[str]
) -> list[str]:
    """``count`` ETI codes above the highest one stored, skipping ``reserved``."""
    if count == 0:
        return []
    stored = await session.scalars(
        select(B2BVolumeModel.eti_code).where(
            func.upper(B2BVolumeModel.eti_code).like(f"{ETI_PREFIX}%")
        )
    )
    highest = 0
    for code in stored:
        match = _ETI_NUMBER.match(code)
        if match:
            highest = max(highest, int(match.group(1)))
    codes: list[str] = []
    number = highest
    while len(codes) < count:
        number += 1
        code = f"{ETI_PREFIX}{number:04d}"
        if code not in reserved:
            codes.append(code)
    return codes


async def _load(
    session: AsyncSession, model: type[Base], record_id: str
) -> Any:
    record = await session.get(model, record_id)
    if record is None:
        raise KeyError(record_id)
    session.expunge(record)
    return record


class SQLAlchemyShipmentRepository:
    """Shipment repository backed by SQLAlchemy async sessions.

    Implements the ShipmentRepository protocol.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, shipment_id: str) -> ShipmentModel:
        """Get a shipment by ID. Raises KeyError if not found."""
        async with self._session_factory() as session:
            return await _load(session, ShipmentModel, shipment_id)

    async def get_address(self, address_id: str) -> Address:
        async with self._session_factory() as session:
            row = await session.get(AddressModel, address_id)
            if row is None:
                raise KeyError(address_id)
            return Address(
                **{
                    name: getattr(row, name)
                    for name in Address.__dataclass_fields__
                }
            )

    async def create(self, **kwargs) -> ShipmentModel:
        """Create a new shipment record with its address rows."""
        # Ensure status is a string
        if "status" in kwargs:
            kwargs["status"] = str(kwargs["status"])
        sender = Address.from_mapping(kwargs.pop("sender_address", None))
        recipient = Address.from_mapping(kwargs.pop("recipient_address", None))
        try:
            async with self._session_factory() as session:
                sender_row = AddressModel(**sender.as_dict())
                recipient_row = AddressModel(**recipient.as_dict())
                session.add_all([sender_row, recipient_row])
                await session.flush()
                shipment = ShipmentModel(
                    sender_address_id=sender_row.id,
                    recipient_address_id=recipient_row.id,
                    **_columns(ShipmentModel, kwargs),
                )
                session.add(shipment)
                await session.commit()
                await session.refresh(shipment)
                session.expunge(shipment)
                return shipment
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not create shipment: {exc}") from exc

    async def transition(
        self,
        shipment_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields,
    ) -> ShipmentModel:
        """Move a shipment, appending its history and occurrence rows."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await _compare_and_swap(
                        session,
                        ShipmentModel,
                        shipment_id,
                        expected_status,
                        {**fields, "status": str(new_status)},
                    )
                    session.add(_history_row(history))
                    session.add_all(
                        [_occurrence_row(record) for record in occurrences]
                    )
                return await _load(session, ShipmentModel, shipment_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not update shipment {shipment_id!r}: {exc}"
            ) from exc

    async def list_history(self, shipment_id: str) -> list[StatusHistoryModel]:
        return await _list_history(
            self._session_factory, SubjectKind.SHIPMENT, shipment_id
        )

    async def list_occurrences(self, shipment_id: str) -> list[OccurrenceModel]:
        async with self._session_factory() as session:
            stmt = (
                select(OccurrenceModel)
                .where(OccurrenceModel.subject_kind == SubjectKind.SHIPMENT)
                .where(OccurrenceModel.subject_id == shipment_id)
                .order_by(OccurrenceModel.id)
            )
            result = await session.execute(stmt)
            rows = list(result.scalars().all())
            for row in rows:
                session.expunge(row)
            return rows


async def _list_history(
    session_factory: async_sessionmaker[AsyncSession],
    subject_kind: SubjectKind,
    subject_id: str,
) -> list[StatusHistoryModel]:
    async with session_factory() as session:
        stmt = (
            select(StatusHistoryModel)
            .where(StatusHistoryModel.subject_kind == str(subject_kind))
            .where(StatusHistoryModel.subject_id == subject_id)
            .order_by(StatusHistoryModel.created_at, StatusHistoryModel.id)
        )
        result = await session.execute(stmt)
        rows = list(result.scalars().all())
        for row in rows:
            session.expunge(row)
        return rows


class SQLAlchemyB2BRepository:
    """B2B shipment and volume repository backed by SQLAlchemy.

    Implements the B2BRepository protocol.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._session_factory = session_factory

    async def get_shipment(self, shipment_id: str) -> B2BShipmentModel:
        """Get a B2B shipment by ID. Raises KeyError if not found."""
        async with self._session_factory() as session:
            return await _load(session, B2BShipmentModel, shipment_id)

    async def get_volume(self, volume_id: str) -> B2BVolumeModel:
        """Get a volume by ID. Raises KeyError if not found."""
        async with self._session_factory() as session:
            return await _load(session, B2BVolumeModel, volume_id)

    async def list_volumes(self, shipment_id: str) -> list[B2BVolumeModel]:
        async with self._session_factory() as session:
            stmt = (
                select(B2BVolumeModel)
                .where(B2BVolumeModel.shipment_id == shipment_id)
                .order_by(B2BVolumeModel.volume_number)
            )
            result = await session.execute(stmt)
            volumes = list(result.scalars().all())
            for v in volumes:
                session.expunge(v)
            return volumes

    async def get_volume_by_eti(self, eti_code: str) -> B2BVolumeModel | None:
        async with self._session_factory() as session:
            stmt = select(B2BVolumeModel).where(
                func.upper(B2BVolumeModel.eti_code) == eti_code.upper()
            )
            volume = (await session.execute(stmt)).scalars().first()
            if volume is not None:
                session.expunge(volume)
            return volume

    async def create_shipment(
        self, *, volumes: Sequence[VolumeSpec], **fields
    ) -> B2BShipmentModel:
        """Create a shipment and its volumes awaiting collection.

        Volumes without an ETI code get unused codes above the highest one
        stored. A collision with a concurrent order is retried.
        """
        if "status" in fields:
            fields["status"] = str(fields["status"])
        for attempt in range(1, ETI_CREATE_ATTEMPTS + 1):
            try:
                return await self._create_shipment(volumes, fields)
            except IntegrityError as exc:
                if attempt == ETI_CREATE_ATTEMPTS:
                    raise PersistenceError(
                        f"Could not create B2B shipment: {exc}"
                    ) from exc
                logger.warning(
                    "ETI code collision creating B2B shipment (attempt %d/%d)",
                    attempt,
                    ETI_CREATE_ATTEMPTS,
                )
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    f"Could not create B2B shipment: {exc}"
                ) from exc

    async def _create_shipment(
        self, volumes: Sequence[VolumeSpec], fields: dict[str, Any]
    ) -> B2BShipmentModel:
        async with self._session_factory() as session:
            async with session.begin():
                shipment = B2BShipmentModel(**_columns(B2BShipmentModel, fields))
                session.add(shipment)
                await session.flush()
                shipment_id = shipment.id
                supplied = {
                    spec.eti_code.upper() for spec in volumes if spec.eti_code
                }
                generated = iter(
                    await _unused_eti_codes(
                        session,
                        sum(1 for spec in volumes if not spec.eti_code),
                        supplied,
                    )
                )
                for number, spec in enumerate(volumes, start=1):
                    session.add(
                        B2BVolumeModel(
                            shipment_id=shipment_id,
                            volume_number=number,
                            eti_code=spec.eti_code or next(generated),
                            weight=spec.weight,
                            status=str(VolumeStatus.AGUARDANDO_ACEITE_COLETA),
                            recipient=spec.recipient.as_dict(),
                        )
                    )
            return await _load(session, B2BShipmentModel, shipment_id)

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
    ) -> B2BShipmentModel:
        """Move a shipment and its volumes in one transaction."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await _compare_and_swap(
                        session,
                        B2BShipmentModel,
                        shipment_id,
                        expected_status,
                        {**fields, "status": str(new_status)},
                    )
                    for change in volume_updates:
                        await _compare_and_swap(
                            session,
                            B2BVolumeModel,
                            change.volume_id,
                            change.expected_status,
                            {**change.fields, "status": str(change.new_status)},
                        )
                    session.add_all([_history_row(entry) for entry in history])
                    session.add_all(
                        [_occurrence_row(record) for record in occurrences]
                    )
                return await _load(session, B2BShipmentModel, shipment_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not update B2B shipment {shipment_id!r}: {exc}"
            ) from exc

    async def transition_volume(
        self,
        volume_id: str,
        *,
        expected_status: str,
        new_status: str,
        history: HistoryEntry,
        occurrences: Sequence[OccurrenceRecord] = (),
        **fields,
    ) -> B2BVolumeModel:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await _compare_and_swap(
                        session,
                        B2BVolumeModel,
                        volume_id,
                        expected_status,
                        {**fields, "status": str(new_status)},
                    )
                    session.add(_history_row(history))
                    session.add_all(
                        [_occurrence_row(record) for record in occurrences]
                    )
                return await _load(session, B2BVolumeModel, volume_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not update volume {volume_id!r}: {exc}"
            ) from exc

    async def add_history(self, entry: HistoryEntry) -> None:
        try:
            async with self._session_factory() as session:
                session.add(_history_row(entry))
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not record history: {exc}") from exc

    async def list_history(
        self, subject_kind: SubjectKind, subject_id: str
    ) -> list[StatusHistoryModel]:
        return await _list_history(
            self._session_factory, subject_kind, subject_id
        )
