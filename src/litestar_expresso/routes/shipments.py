"""Shipment endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, ClassVar

from litestar import Controller, get, post
from litestar.params import Dependency

from litestar_expresso.flow import OccurrenceInput, ShipmentFlow
from litestar_expresso.schemas import (
    CreateShipmentRequest,
    FinalizeDeliveryRequest,
    HistoryEntryResponse,
    OccurrenceRequest,
    ShipmentResponse,
    StatusChangeRequest,
)
from litestar_expresso.session import SessionContext

logger = logging.getLogger(__name__)


class ShipmentController(Controller):
    """Regular shipment lifecycle endpoints."""

    path = "/shipments"
    tags: ClassVar[list[str]] = ["shipments"]

    @get("/health")
    async def shipments_health(self) -> dict[str, str]:
        """Healthcheck endpoint for shipment routes."""
        return {"status": "ok"}

    @post("/")
    async def create_shipment(
        self,
        data: CreateShipmentRequest,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        """Promote a checked-out quote to a shipment awaiting its label."""
        shipment = await shipment_flow.create_shipment(data.to_quote(), ctx)
        return ShipmentResponse.from_shipment(shipment)

    @get("/{shipment_id:str}")
    async def get_shipment(
        self,
        shipment_id: str,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        shipment = await shipment_flow.get_shipment(shipment_id)
        return ShipmentResponse.from_shipment(shipment)

    @get("/{shipment_id:str}/history")
    async def get_history(
        self,
        shipment_id: str,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
    ) -> list[HistoryEntryResponse]:
        history = await shipment_flow.get_history(shipment_id)
        return [HistoryEntryResponse.from_entry(entry) for entry in history]

    @post("/{shipment_id:str}/accept")
    async def accept_pickup(
        self,
        shipment_id: str,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        """Driver accepts the pickup of a shipment."""
        shipment = await shipment_flow.accept_pickup(shipment_id, ctx)
        return ShipmentResponse.from_shipment(shipment)

    @post("/{shipment_id:str}/occurrences")
    async def register_occurrence(
        self,
        shipment_id: str,
        data: OccurrenceRequest,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        """Record a driver occurrence, with optional photos and signature."""
        shipment = await shipment_flow.register_occurrence(
            shipment_id,
            OccurrenceInput(type=data.type, observations=data.observations),
            ctx,
            evidence=data.to_capture(),
        )
        return ShipmentResponse.from_shipment(shipment)

    @post("/{shipment_id:str}/finalize")
    async def finalize_delivery(
        self,
        shipment_id: str,
        data: FinalizeDeliveryRequest,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        """Close a delivery; at least one photo is required."""
        shipment = await shipment_flow.finalize_delivery(
            shipment_id,
            data.to_capture(),
            ctx,
            observations=data.observations,
        )
        return ShipmentResponse.from_shipment(shipment)

    @post("/{shipment_id:str}/status")
    async def set_status(
        self,
        shipment_id: str,
        data: StatusChangeRequest,
        shipment_flow: Annotated[ShipmentFlow, Dependency(skip_validation=True)],
        ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
    ) -> ShipmentResponse:
        """Back-office status change."""
        shipment = await shipment_flow.set_status(
            shipment_id,
            data.status,
            ctx,
            description=data.description,
            observations=data.observations,
        )
        return ShipmentResponse.from_shipment(shipment)
