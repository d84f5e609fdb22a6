"""Tests for the transition tables."""

import pytest

from litestar_expresso.enums import (
    B2BShipmentStatus,
    ShipmentStatus,
    VolumeStatus,
)
from litestar_expresso.exceptions import InvalidStateError
from litestar_expresso.transitions import (
    B2B_SHIPMENT_TRANSITIONS,
    PICKUP_ACCEPTABLE,
    SHIPMENT_TRANSITIONS,
    VOLUME_TRANSITIONS,
    can_transition,
    ensure_transition,
    is_terminal,
)

S = ShipmentStatus
V = VolumeStatus


def test_every_status_has_a_table_entry():
    assert set(SHIPMENT_TRANSITIONS) == set(ShipmentStatus)
    assert set(B2B_SHIPMENT_TRANSITIONS) == set(B2BShipmentStatus)
    assert set(VOLUME_TRANSITIONS) == set(VolumeStatus)


def test_main_shipment_path_is_allowed():
    path = [
        S.PENDING_LABEL,
        S.LABEL_GENERATED,
        S.PENDING_DOCUMENT,
        S.PENDING_PAYMENT,
        S.PAYMENT_CONFIRMED,
        S.COLETA_ACEITA,
        S.COLETA_FINALIZADA,
        S.EM_TRANSITO,
        S.ENTREGA_FINALIZADA,
    ]
    for current, target in zip(path, path[1:], strict=False):
        assert can_transition(SHIPMENT_TRANSITIONS, current, target)


def test_failed_attempt_can_be_retried():
    assert can_transition(SHIPMENT_TRANSITIONS, S.TENTATIVA_ENTREGA, S.EM_TRANSITO)
    assert can_transition(
        SHIPMENT_TRANSITIONS, S.TENTATIVA_ENTREGA, S.TENTATIVA_ENTREGA
    )


def test_stalled_states_need_resolution():
    for stalled in (S.ENDERECO_INCORRETO, S.AGUARDANDO_DESTINATARIO):
        assert not can_transition(
            SHIPMENT_TRANSITIONS, stalled, S.ENTREGA_FINALIZADA
        )
        assert can_transition(SHIPMENT_TRANSITIONS, stalled, S.EM_TRANSITO)


def test_no_backwards_moves():
    assert not can_transition(SHIPMENT_TRANSITIONS, S.EM_TRANSITO, S.COLETA_ACEITA)
    assert not can_transition(
        SHIPMENT_TRANSITIONS, S.PAYMENT_CONFIRMED, S.PENDING_LABEL
    )


def test_pickup_acceptable_states():
    assert PICKUP_ACCEPTABLE == {S.PENDING_LABEL, S.LABEL_GENERATED}


def test_terminal_states():
    assert is_terminal(SHIPMENT_TRANSITIONS, S.ENTREGA_FINALIZADA)
    assert is_terminal(VOLUME_TRANSITIONS, V.DEVOLUCAO)
    assert is_terminal(VOLUME_TRANSITIONS, V.CONCLUIDO)
    assert is_terminal(B2B_SHIPMENT_TRANSITIONS, B2BShipmentStatus.CONCLUIDO)
    assert not is_terminal(VOLUME_TRANSITIONS, V.EM_ROTA)


def test_devolucao_reachable_from_every_live_volume_state():
    for status, targets in VOLUME_TRANSITIONS.items():
        if targets and status not in (V.ENTREGUE,):
            assert V.DEVOLUCAO in targets, status


def test_volume_collection_can_skip_acceptance():
    assert can_transition(
        VOLUME_TRANSITIONS, V.AGUARDANDO_ACEITE_COLETA, V.COLETADO
    )


def test_ensure_transition_raises_with_states():
    with pytest.raises(InvalidStateError) as exc_info:
        ensure_transition(
            SHIPMENT_TRANSITIONS, "s-1", S.ENTREGA_FINALIZADA, S.EM_TRANSITO
        )
    assert exc_info.value.current == "ENTREGA_FINALIZADA"
    assert exc_info.value.target == "EM_TRANSITO"


def test_unknown_current_status_allows_nothing():
    assert not can_transition(SHIPMENT_TRANSITIONS, "BOGUS", S.EM_TRANSITO)
