"""SQLAlchemy 2.0 async models for the shipment lifecycle."""

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    """Base class for all expresso models."""


class AddressModel(Base):
    __tablename__ = "expresso_addresses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), default="")
    document: Mapped[str] = mapped_column(String(32), default="")
    phone: Mapped[str] = mapped_column(String(32), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    cep: Mapped[str] = mapped_column(String(8), default="")
    street: Mapped[str] = mapped_column(String(255), default="")
    number: Mapped[str] = mapped_column(String(32), default="")
    complement: Mapped[str] = mapped_column(String(255), default="")
    neighborhood: Mapped[str] = mapped_column(String(255), default="")
    city: Mapped[str] = mapped_column(String(255), default="")
    state: Mapped[str] = mapped_column(String(2), default="")


class ShipmentModel(Base):
    """Regular shipment record."""

    __tablename__ = "expresso_shipments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tracking_code: Mapped[str] = mapped_column(String(32), unique=True)
    status: Mapped[str] = mapped_column(String(32), index=True)
    user_id: Mapped[str | None] = mapped_column(
        String(64), index=True, nullable=True, default=None
    )
    session_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    sender_address_id: Mapped[str] = mapped_column(
        ForeignKey("expresso_addresses.id")
    )
    recipient_address_id: Mapped[str] = mapped_column(
        ForeignKey("expresso_addresses.id")
    )
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 3))
    length: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    width: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    height: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    format: Mapped[str] = mapped_column(String(16), default="box")
    billable_weight: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 3), nullable=True, default=None
    )
    service_option: Mapped[str] = mapped_column(String(64), default="")
    pickup_option: Mapped[str] = mapped_column(String(64), default="")
    price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, default=None
    )
    document_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    motorista_id: Mapped[str | None] = mapped_column(
        String(64), index=True, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )


class B2BShipmentModel(Base):
    """B2B express shipment; its displayed status is derived from volumes."""

    __tablename__ = "expresso_b2b_shipments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tracking_code: Mapped[str] = mapped_column(String(32), unique=True)
    client_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(32), index=True)
    motorista_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    volume_count: Mapped[int] = mapped_column(Integer, default=0)
    total_weight: Mapped[Decimal] = mapped_column(
        Numeric(10, 3), default=Decimal(0)
    )
    delivery_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, default=None
    )
    observations: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )


class B2BVolumeModel(Base):
    """One physical volume of a B2B shipment."""

    __tablename__ = "expresso_b2b_volumes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    shipment_id: Mapped[str] = mapped_column(
        ForeignKey("expresso_b2b_shipments.id"), index=True
    )
    volume_number: Mapped[int] = mapped_column(Integer)
    eti_code: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True, default=None
    )
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 3))
    status: Mapped[str] = mapped_column(String(32), index=True)
    # recipient snapshot taken at order submission
    recipient: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    motorista_coleta_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    motorista_entrega_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    foto_entrega_url: Mapped[str | None] = mapped_column(
        String(512), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )


class StatusHistoryModel(Base):
    """Append-only status history; rows are never updated or deleted."""

    __tablename__ = "expresso_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_kind: Mapped[str] = mapped_column(String(16))
    subject_id: Mapped[str] = mapped_column(String(36), index=True)
    status: Mapped[str] = mapped_column(String(32))
    motorista_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    description: Mapped[str] = mapped_column(String(255), default="")
    observations: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None
    )
    occurrence_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, default=None
    )
    is_alert: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )


class OccurrenceModel(Base):
    """Occurrence row, optionally pointing at an uploaded evidence file."""

    __tablename__ = "expresso_occurrences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_kind: Mapped[str] = mapped_column(String(16))
    subject_id: Mapped[str] = mapped_column(String(36), index=True)
    occurrence_type: Mapped[str] = mapped_column(String(32))
    motorista_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    description: Mapped[str] = mapped_column(String(255), default="")
    observations: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None
    )
    target_status: Mapped[str | None] = mapped_column(
        String(32), nullable=True, default=None
    )
    file_url: Mapped[str | None] = mapped_column(
        String(512), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )


class WebhookRetryModel(Base):
    """Webhook delivery retry queue entry."""

    __tablename__ = "expresso_webhook_retries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    url: Mapped[str] = mapped_column(String(512))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)
    attempts: Mapped[int] = mapped_column(default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None
    )
    status: Mapped[str] = mapped_column(String(20), default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now
    )
