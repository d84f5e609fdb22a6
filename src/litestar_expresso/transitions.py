"""Allowed status transitions for shipments, B2B shipments and volumes.

Each table maps a current status to the set of statuses it may move to.
Statuses missing from a table, or mapped to an empty set, are terminal.
"""

from __future__ import annotations

from collections.abc import Mapping

from litestar_expresso.enums import (
    B2BShipmentStatus,
    ShipmentStatus,
    VolumeStatus,
)
from litestar_expresso.exceptions import InvalidStateError

S = ShipmentStatus
B = B2BShipmentStatus
V = VolumeStatus

_STALLED = {S.ENDERECO_INCORRETO, S.AGUARDANDO_DESTINATARIO}
_IN_ROUTE_OUTCOMES = {
    S.TENTATIVA_ENTREGA,
    S.ENTREGA_FINALIZADA,
    *_STALLED,
}

SHIPMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    S.PENDING_LABEL: frozenset({S.LABEL_GENERATED, S.COLETA_ACEITA}),
    S.LABEL_GENERATED: frozenset({S.PENDING_DOCUMENT, S.COLETA_ACEITA}),
    S.PENDING_DOCUMENT: frozenset({S.PENDING_PAYMENT}),
    S.PENDING_PAYMENT: frozenset({S.PAYMENT_CONFIRMED}),
    S.PAYMENT_CONFIRMED: frozenset({S.COLETA_ACEITA}),
    S.COLETA_ACEITA: frozenset(
        {S.COLETA_FINALIZADA, S.EM_TRANSITO, *_IN_ROUTE_OUTCOMES}
    ),
    S.COLETA_FINALIZADA: frozenset({S.EM_TRANSITO, *_IN_ROUTE_OUTCOMES}),
    S.EM_TRANSITO: frozenset(_IN_ROUTE_OUTCOMES),
    # retry branch: a failed attempt may be followed by another one
    S.TENTATIVA_ENTREGA: frozenset({S.EM_TRANSITO, *_IN_ROUTE_OUTCOMES}),
    S.ENDERECO_INCORRETO: frozenset({S.EM_TRANSITO, S.TENTATIVA_ENTREGA}),
    S.AGUARDANDO_DESTINATARIO: frozenset({S.EM_TRANSITO, S.TENTATIVA_ENTREGA}),
    S.ENTREGA_FINALIZADA: frozenset(),
}

# Only these states let a driver accept a pickup.
PICKUP_ACCEPTABLE: frozenset[str] = frozenset({S.PENDING_LABEL, S.LABEL_GENERATED})

# States in which a driver can register an occurrence.
OCCURRENCE_STATES: frozenset[str] = frozenset(
    {S.COLETA_ACEITA, S.COLETA_FINALIZADA, S.EM_TRANSITO, S.TENTATIVA_ENTREGA}
)

# In-progress states from which a delivery can be finalized.
FINALIZABLE: frozenset[str] = frozenset({S.EM_TRANSITO, S.TENTATIVA_ENTREGA})

B2B_SHIPMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    B.PENDENTE: frozenset({B.ACEITA}),
    B.ACEITA: frozenset({B.B2B_COLETA_FINALIZADA}),
    B.B2B_COLETA_FINALIZADA: frozenset({B.B2B_ENTREGA_ACEITA, B.ENTREGUE}),
    B.B2B_ENTREGA_ACEITA: frozenset({B.ENTREGUE}),
    B.ENTREGUE: frozenset({B.CONCLUIDO}),
    B.CONCLUIDO: frozenset(),
}

# Delivery-phase volumes that have not left for the route yet.
PRE_ROUTE: frozenset[str] = frozenset(
    {V.COLETADO, V.EM_TRIAGEM, V.AGUARDANDO_ACEITE_EXPEDICAO, V.EXPEDIDO}
)
COLLECTION_PENDING: frozenset[str] = frozenset(
    {V.AGUARDANDO_ACEITE_COLETA, V.COLETA_ACEITA}
)
DELIVERED: frozenset[str] = frozenset({V.ENTREGUE, V.CONCLUIDO})

VOLUME_TRANSITIONS: dict[str, frozenset[str]] = {
    V.AGUARDANDO_ACEITE_COLETA: frozenset(
        {V.COLETA_ACEITA, V.COLETADO, V.DEVOLUCAO}
    ),
    V.COLETA_ACEITA: frozenset({V.COLETADO, V.DEVOLUCAO}),
    V.COLETADO: frozenset({V.EM_TRIAGEM, V.EM_ROTA, V.DEVOLUCAO}),
    V.EM_TRIAGEM: frozenset(
        {V.AGUARDANDO_ACEITE_EXPEDICAO, V.EM_ROTA, V.DEVOLUCAO}
    ),
    V.AGUARDANDO_ACEITE_EXPEDICAO: frozenset(
        {V.EXPEDIDO, V.EM_ROTA, V.DEVOLUCAO}
    ),
    V.EXPEDIDO: frozenset({V.EM_ROTA, V.DEVOLUCAO}),
    V.EM_ROTA: frozenset({V.ENTREGUE, V.DEVOLUCAO}),
    V.ENTREGUE: frozenset({V.CONCLUIDO}),
    V.CONCLUIDO: frozenset(),
    V.DEVOLUCAO: frozenset(),
}


def can_transition(
    table: Mapping[str, frozenset[str]], current: str, target: str
) -> bool:
    """Whether ``current -> target`` is listed in ``table``."""
    return target in table.get(current, frozenset())


def ensure_transition(
    table: Mapping[str, frozenset[str]],
    subject_id: str,
    current: str,
    target: str,
) -> None:
    """Raise InvalidStateError unless ``current -> target`` is allowed."""
    if not can_transition(table, current, target):
        raise InvalidStateError(subject_id, str(current), str(target))


def is_terminal(table: Mapping[str, frozenset[str]], status: str) -> bool:
    return not table.get(status)
