"""B2B phase classification and derived aggregate status."""

from __future__ import annotations

from collections.abc import Iterable

from litestar_expresso.enums import (
    B2BShipmentStatus,
    Phase,
    ShipmentType,
)
from litestar_expresso.transitions import DELIVERED

_COLETA_STATUSES = frozenset({B2BShipmentStatus.ACEITA})
_ENTREGA_STATUSES = frozenset(
    {
        B2BShipmentStatus.B2B_COLETA_FINALIZADA,
        B2BShipmentStatus.B2B_ENTREGA_ACEITA,
    }
)


def classify_phase(
    shipment_type: str | None,
    current_status: str | None,
    *,
    is_b2b: bool,
) -> Phase:
    """Decide whether a shipment is in its collection or delivery phase.

    The declared type wins over the status; collection is tested first, so a
    ``B2B-0`` shipment is always a collection whatever its status says.
    """
    if shipment_type == ShipmentType.B2B_COLETA or (
        is_b2b and current_status in _COLETA_STATUSES
    ):
        return Phase.COLETA
    if shipment_type == ShipmentType.B2B_ENTREGA or (
        is_b2b and current_status in _ENTREGA_STATUSES
    ):
        return Phase.ENTREGA
    return Phase.NONE


def aggregate_status(stored_status: str, volume_statuses: Iterable[str]) -> str:
    """Status shown for a B2B shipment, derived from its volumes.

    ``CONCLUIDO`` when there is at least one volume and all of them are
    delivered; otherwise the stored status.
    """
    statuses = list(volume_statuses)
    if statuses and all(status in DELIVERED for status in statuses):
        return B2BShipmentStatus.CONCLUIDO
    return stored_status
