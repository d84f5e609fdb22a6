"""Request/response schemas for HTTP endpoints."""

from __future__ import annotations

import base64
import binascii
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from litestar_expresso.enums import (
    OccurrenceType,
    ShipmentStatus,
    ShipmentType,
    VolumeStatus,
    status_label,
)
from litestar_expresso.evidence import CapturedFile, EvidenceCapture
from litestar_expresso.types import Address, PackageInfo, Quote, VolumeSpec


class AddressPayload(BaseModel):
    name: str = ""
    document: str = ""
    phone: str = ""
    email: str = ""
    cep: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""

    def to_address(self) -> Address:
        return Address(**self.model_dump())


class PackagePayload(BaseModel):
    weight: Decimal = Field(gt=0)
    length: Decimal = Decimal(0)
    width: Decimal = Decimal(0)
    height: Decimal = Decimal(0)
    format: str = "box"


class FilePayload(BaseModel):
    """A captured photo or signature, base64 encoded."""

    content: str
    content_type: str = "image/jpeg"
    filename: str = ""

    @field_validator("content")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError("content must be base64 encoded") from exc
        return value

    def to_captured(self) -> CapturedFile:
        return CapturedFile(
            content=base64.b64decode(self.content),
            content_type=self.content_type,
            filename=self.filename,
        )


class EvidencePayload(BaseModel):
    photos: list[FilePayload] = Field(default_factory=list)
    signature: FilePayload | None = None

    def to_capture(self) -> EvidenceCapture:
        return EvidenceCapture.from_files(
            photos=[photo.to_captured() for photo in self.photos],
            signature=(
                self.signature.to_captured()
                if self.signature is not None
                else None
            ),
        )


def _capture(evidence: EvidencePayload | None) -> EvidenceCapture | None:
    return evidence.to_capture() if evidence is not None else None


class CreateShipmentRequest(BaseModel):
    """Checked-out quote to be promoted to a shipment."""

    sender: AddressPayload
    recipient: AddressPayload
    package: PackagePayload
    price: Decimal = Field(ge=0)
    service_option: str = "standard"
    pickup_option: str = "dropoff"
    document_data: dict = Field(default_factory=dict)

    def to_quote(self) -> Quote:
        return Quote(
            sender=self.sender.to_address(),
            recipient=self.recipient.to_address(),
            package=PackageInfo(**self.package.model_dump()),
            price=self.price,
            service_option=self.service_option,
            pickup_option=self.pickup_option,
            document_data=self.document_data,
        )


class OccurrenceRequest(BaseModel):
    type: OccurrenceType
    observations: str = ""
    evidence: EvidencePayload | None = None

    def to_capture(self) -> EvidenceCapture | None:
        return _capture(self.evidence)


class FinalizeDeliveryRequest(BaseModel):
    evidence: EvidencePayload | None = None
    observations: str | None = None

    def to_capture(self) -> EvidenceCapture | None:
        return _capture(self.evidence)


class StatusChangeRequest(BaseModel):
    status: ShipmentStatus
    description: str | None = None
    observations: str | None = None


class ShipmentResponse(BaseModel):
    """Serialized shipment response payload."""

    id: str
    tracking_code: str
    status: str
    status_label: str
    motorista_id: str | None
    price: Decimal | None
    billable_weight: Decimal | None

    @classmethod
    def from_shipment(cls, shipment):
        return cls(
            id=str(shipment.id),
            tracking_code=str(shipment.tracking_code),
            status=str(shipment.status),
            status_label=status_label(str(shipment.status)),
            motorista_id=shipment.motorista_id,
            price=shipment.price,
            billable_weight=shipment.billable_weight,
        )


class HistoryEntryResponse(BaseModel):
    status: str
    description: str
    observations: str | None
    motorista_id: str | None
    is_alert: bool
    created_at: datetime

    @classmethod
    def from_entry(cls, entry):
        return cls(
            status=str(entry.status),
            description=entry.description or "",
            observations=entry.observations,
            motorista_id=entry.motorista_id,
            is_alert=bool(entry.is_alert),
            created_at=entry.created_at,
        )


class B2BVolumeRequest(BaseModel):
    weight: Decimal = Field(gt=0)
    recipient: AddressPayload
    eti_code: str | None = None

    def to_spec(self) -> VolumeSpec:
        return VolumeSpec(
            weight=self.weight,
            recipient=self.recipient.to_address(),
            eti_code=self.eti_code,
        )


class CreateB2BShipmentRequest(BaseModel):
    volumes: list[B2BVolumeRequest] = Field(min_length=1)
    client_id: str | None = None
    delivery_date: date | None = None
    observations: str | None = None


class B2BVolumeResponse(BaseModel):
    id: str
    shipment_id: str
    volume_number: int
    eti_code: str | None
    status: str
    status_label: str
    weight: Decimal
    motorista_coleta_id: str | None
    motorista_entrega_id: str | None
    foto_entrega_url: str | None

    @classmethod
    def from_volume(cls, volume):
        return cls(
            id=str(volume.id),
            shipment_id=str(volume.shipment_id),
            volume_number=volume.volume_number,
            eti_code=volume.eti_code,
            status=str(volume.status),
            status_label=status_label(str(volume.status)),
            weight=volume.weight,
            motorista_coleta_id=volume.motorista_coleta_id,
            motorista_entrega_id=volume.motorista_entrega_id,
            foto_entrega_url=volume.foto_entrega_url,
        )


class B2BShipmentResponse(BaseModel):
    """B2B shipment with the status derived from its volumes."""

    id: str
    tracking_code: str
    status: str
    stored_status: str
    status_label: str
    motorista_id: str | None
    volume_count: int
    total_weight: Decimal
    volumes: list[B2BVolumeResponse] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view):
        shipment = view.shipment
        return cls(
            id=str(shipment.id),
            tracking_code=str(shipment.tracking_code),
            status=str(view.status),
            stored_status=view.stored_status,
            status_label=status_label(str(view.status)),
            motorista_id=shipment.motorista_id,
            volume_count=shipment.volume_count,
            total_weight=shipment.total_weight,
            volumes=[B2BVolumeResponse.from_volume(v) for v in view.volumes],
        )


class B2BFinalizeRequest(BaseModel):
    scanned_codes: list[str] = Field(default_factory=list)
    evidence: EvidencePayload | None = None
    shipment_type: ShipmentType | None = None

    def to_capture(self) -> EvidenceCapture | None:
        return _capture(self.evidence)


class RequiredCodesResponse(BaseModel):
    codes: list[str]


class CodeCheckRequest(BaseModel):
    """A scan to check, with the inputs the driver already had accepted."""

    code: str
    accepted: list[str] = Field(default_factory=list)


class CodeCheckResponse(BaseModel):
    matched: str
    validated_count: int
    required_count: int
    is_complete: bool
    remaining_codes: list[str]


class VolumeStatusRequest(BaseModel):
    status: VolumeStatus
    observations: str | None = None


class VolumeOccurrenceRequest(BaseModel):
    occurrence_type: str = Field(min_length=1)
    observations: str | None = None
