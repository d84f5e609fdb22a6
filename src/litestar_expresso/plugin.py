"""Router factory for litestar-expresso."""

from __future__ import annotations

from litestar import Router
from litestar.di import Provide

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.exceptions import EXCEPTION_HANDLERS
from litestar_expresso.flow import B2BFlow, InFlightGuard, ShipmentFlow
from litestar_expresso.protocols import (
    B2BRepository,
    EvidenceStorage,
    ShipmentRepository,
    WebhookRetryStore,
)
from litestar_expresso.routes.b2b import B2BShipmentController, B2BVolumeController
from litestar_expresso.routes.shipments import ShipmentController
from litestar_expresso.session import provide_session_context
from litestar_expresso.storage import HTTPObjectStorage
from litestar_expresso.webhooks import WebhookDispatcher


def create_expresso_router(
    *,
    config: ExpressoConfig,
    repository: ShipmentRepository,
    b2b_repository: B2BRepository,
    storage: EvidenceStorage | None = None,
    retry_store: WebhookRetryStore | None = None,
    dispatcher: WebhookDispatcher | None = None,
) -> Router:
    """Create a configured Litestar router.

    Args:
        config: Expresso configuration.
        repository: Regular shipment persistence backend.
        b2b_repository: B2B shipment and volume persistence backend.
        storage: Evidence object storage. Built from ``config`` when
            ``storage_url`` is set and none is given.
        retry_store: Storage for the webhook retry queue.
        dispatcher: Webhook dispatcher. Built from ``config`` if not provided.

    Returns:
        A Litestar Router with all shipment and B2B endpoints.
    """
    if storage is None and config.storage_url:
        storage = HTTPObjectStorage.from_config(config)
    actual_dispatcher = dispatcher or WebhookDispatcher.from_config(
        config, retry_store=retry_store
    )
    # one guard for both flows; shipment and volume ids never collide
    guard = InFlightGuard()

    shipment_flow = ShipmentFlow(
        repository,
        storage=storage,
        dispatcher=actual_dispatcher,
        guard=guard,
        cubic_meter_kg_equivalent=config.cubic_meter_kg_equivalent,
    )
    b2b_flow = B2BFlow(
        b2b_repository,
        storage=storage,
        dispatcher=actual_dispatcher,
        guard=guard,
    )

    return Router(
        path="/",
        route_handlers=[
            ShipmentController,
            B2BShipmentController,
            B2BVolumeController,
        ],
        dependencies={
            "config": Provide(lambda: config, sync_to_thread=False),
            "shipment_flow": Provide(
                lambda: shipment_flow, sync_to_thread=False
            ),
            "b2b_flow": Provide(lambda: b2b_flow, sync_to_thread=False),
            "dispatcher": Provide(
                lambda: actual_dispatcher,
                sync_to_thread=False,
            ),
            "ctx": Provide(provide_session_context, sync_to_thread=False),
        },
        exception_handlers=EXCEPTION_HANDLERS,
    )
