"""B2B shipment and volume endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, ClassVar

from litestar import Controller, get, post
from litestar.params import Dependency

from litestar_expresso.flow import B2BFlow
from litestar_expresso.schemas import (
    B2BFinalizeRequest,
    B2BShipmentResponse,
    B2BVolumeResponse,
    CodeCheckRequest,
    CodeCheckResponse,
    CreateB2BShipmentRequest,
    EvidencePayload,
    HistoryEntryResponse,
    RequiredCodesResponse,
    VolumeOccurrenceRequest,
    VolumeStatusRequest,
)
from litestar_expresso.session import SessionContext

logger = logging.getLogger(__name__)


class B2BShipmentController(Controller):
    """Shipment-level B2B endpoints: acceptance, validation, finalization."""

    path = "/b2b/shipments"
    tags: ClassVar[list[str]] = ["b2b"]

    @post("/")
    async def create_shipment(
        self,
        data: CreateB2BShipmentRequest,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BShipmentResponse:
        """Submit a B2B order with its volumes."""
        shipment = await b2b_flow.create_shipment(
            ctx,
            volumes=[volume.to_spec() for volume in data.volumes],
            client_id=data.client_id,
            delivery_date=data.delivery_date,
            observations=data.observations,
        )
        view = await b2b_flow.get_shipment_view(str(shipment.id))
        return B2BShipmentResponse.from_view(view)

    @get("/{shipment_id:str}")
    async def get_shipment(
        self,
        shipment_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> B2BShipmentResponse:
        view = await b2b_flow.get_shipment_view(shipment_id)
        return B2BShipmentResponse.from_view(view)

    @get("/{shipment_id:str}/history")
    async def get_history(
        self,
        shipment_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> list[HistoryEntryResponse]:
        history = await b2b_flow.get_history(shipment_id)
        return [HistoryEntryResponse.from_entry(entry) for entry in history]

    @get("/{shipment_id:str}/codes")
    async def required_codes(
        self,
        shipment_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> RequiredCodesResponse:
        """ETI codes the driver has to scan before finalizing."""
        codes = await b2b_flow.required_codes(shipment_id)
        return RequiredCodesResponse(codes=codes)

    @post("/{shipment_id:str}/codes/check")
    async def check_code(
        self,
        shipment_id: str,
        data: CodeCheckRequest,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> CodeCheckResponse:
        """Check one scan against the codes the driver already had accepted."""
        validator = await b2b_flow.start_validation(shipment_id)
        validator.submit_all(data.accepted)
        matched = validator.submit(data.code)
        return CodeCheckResponse(
            matched=matched,
            validated_count=validator.validated_count,
            required_count=validator.required_count,
            is_complete=validator.is_complete,
            remaining_codes=validator.remaining_codes,
        )

    @post("/{shipment_id:str}/accept-coleta")
    async def accept_coleta(
        self,
        shipment_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BShipmentResponse:
        await b2b_flow.accept_coleta(shipment_id, ctx)
        view = await b2b_flow.get_shipment_view(shipment_id)
        return B2BShipmentResponse.from_view(view)

    @post("/{shipment_id:str}/accept-entrega")
    async def accept_entrega(
        self,
        shipment_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BShipmentResponse:
        await b2b_flow.accept_entrega(shipment_id, ctx)
        view = await b2b_flow.get_shipment_view(shipment_id)
        return B2BShipmentResponse.from_view(view)

    @post("/{shipment_id:str}/finalize")
    async def finalize(
        self,
        shipment_id: str,
        data: B2BFinalizeRequest,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BShipmentResponse:
        """Finalize the collection or delivery phase of a shipment."""
        await b2b_flow.finalize_coleta_ou_entrega(
            shipment_id,
            data.scanned_codes,
            data.to_capture(),
            ctx,
            shipment_type=data.shipment_type,
        )
        view = await b2b_flow.get_shipment_view(shipment_id)
        return B2BShipmentResponse.from_view(view)


class B2BVolumeController(Controller):
    """Per-volume B2B endpoints."""

    path = "/b2b/volumes"
    tags: ClassVar[list[str]] = ["b2b"]

    @get("/by-eti/{code:str}")
    async def find_by_eti(
        self,
        code: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> B2BVolumeResponse:
        volume = await b2b_flow.find_volume_by_eti(code)
        return B2BVolumeResponse.from_volume(volume)

    @get("/{volume_id:str}/history")
    async def get_history(
        self,
        volume_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
    ) -> list[HistoryEntryResponse]:
        history = await b2b_flow.get_volume_history(volume_id)
        return [HistoryEntryResponse.from_entry(entry) for entry in history]

    @post("/{volume_id:str}/accept-coleta")
    async def accept_coleta(
        self,
        volume_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BVolumeResponse:
        volume = await b2b_flow.accept_volume_for_coleta(volume_id, ctx)
        return B2BVolumeResponse.from_volume(volume)

    @post("/{volume_id:str}/accept-entrega")
    async def accept_entrega(
        self,
        volume_id: str,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BVolumeResponse:
        volume = await b2b_flow.accept_volume_for_entrega(volume_id, ctx)
        return B2BVolumeResponse.from_volume(volume)

    @post("/{volume_id:str}/status")
    async def advance(
        self,
        volume_id: str,
        data: VolumeStatusRequest,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BVolumeResponse:
        """Distribution-center status change."""
        volume = await b2b_flow.advance_volume(
            volume_id, data.status, ctx, observations=data.observations
        )
        return B2BVolumeResponse.from_volume(volume)

    @post("/{volume_id:str}/finalize")
    async def finalize_delivery(
        self,
        volume_id: str,
        data: EvidencePayload,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> B2BVolumeResponse:
        volume = await b2b_flow.finalize_volume_delivery(
            volume_id, data.to_capture(), ctx
        )
        return B2BVolumeResponse.from_volume(volume)

    @post("/{volume_id:str}/occurrences")
    async def register_occurrence(
        self,
        volume_id: str,
        data: VolumeOccurrenceRequest,
        b2b_flow: Annotated[B2BFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> HistoryEntryResponse:
        entry = await b2b_flow.register_volume_occurrence(
            volume_id, data.occurrence_type, ctx, observations=data.observations
        )
        return HistoryEntryResponse.from_entry(entry)
