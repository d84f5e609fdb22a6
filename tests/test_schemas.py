"""Schema tests."""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from conftest import JPEG, PNG, b64
from litestar_expresso.enums import OccurrenceType
from litestar_expresso.flow import B2BShipmentView
from litestar_expresso.schemas import (
    B2BFinalizeRequest,
    B2BShipmentResponse,
    CreateB2BShipmentRequest,
    CreateShipmentRequest,
    EvidencePayload,
    FilePayload,
    OccurrenceRequest,
    ShipmentResponse,
)


class TestFilePayload:
    def test_decodes_content(self) -> None:
        captured = FilePayload(content=b64()).to_captured()
        assert captured.content == JPEG
        assert captured.content_type == "image/jpeg"

    def test_rejects_non_base64(self) -> None:
        with pytest.raises(ValidationError):
            FilePayload(content="not base64!")


class TestEvidencePayload:
    def test_to_capture(self) -> None:
        payload = EvidencePayload(
            photos=[{"content": b64()}, {"content": b64()}],
            signature={"content": b64(PNG), "content_type": "image/png"},
        )
        capture = payload.to_capture()
        assert len(capture) == 3
        assert capture.has_photo
        assert capture.signature.content == PNG

    def test_empty_capture(self) -> None:
        capture = EvidencePayload().to_capture()
        assert len(capture) == 0
        assert not capture.has_photo


class TestCreateShipmentRequest:
    def test_to_quote_normalizes_addresses(self) -> None:
        req = CreateShipmentRequest(
            sender={"name": " Loja ", "cep": "01310-100", "state": "sp"},
            recipient={"name": "Cliente"},
            package={"weight": "2.5", "length": "10"},
            price="30.00",
        )
        quote = req.to_quote()
        assert quote.sender.name == "Loja"
        assert quote.sender.cep == "01310100"
        assert quote.sender.state == "SP"
        assert quote.package.weight == Decimal("2.5")
        assert quote.price == Decimal("30.00")

    def test_weight_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CreateShipmentRequest(
                sender={}, recipient={}, package={"weight": "0"}, price="1"
            )


class TestOccurrenceRequest:
    def test_unknown_type_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OccurrenceRequest(type="extraviado")

    def test_evidence_is_optional(self) -> None:
        req = OccurrenceRequest(type="em_transito")
        assert req.type is OccurrenceType.EM_TRANSITO
        assert req.to_capture() is None


class TestB2BRequests:
    def test_order_needs_a_volume(self) -> None:
        with pytest.raises(ValidationError):
            CreateB2BShipmentRequest(volumes=[])

    def test_volume_to_spec(self) -> None:
        req = CreateB2BShipmentRequest(
            volumes=[{"weight": "1.5", "recipient": {"cep": "30140-071"}}]
        )
        spec = req.volumes[0].to_spec()
        assert spec.weight == Decimal("1.5")
        assert spec.recipient.cep == "30140071"
        assert spec.eti_code is None

    def test_finalize_accepts_declared_type(self) -> None:
        req = B2BFinalizeRequest(scanned_codes=["ETI-0001"], shipment_type="B2B-0")
        assert req.shipment_type == "B2B-0"
        with pytest.raises(ValidationError):
            B2BFinalizeRequest(shipment_type="B2B-9")


class TestResponses:
    def test_shipment_response_labels_status(self) -> None:
        shipment = SimpleNamespace(
            id="s-1",
            tracking_code="EX1",
            status="TENTATIVA_ENTREGA",
            motorista_id="m-1",
            price=Decimal("10"),
            billable_weight=None,
        )
        resp = ShipmentResponse.from_shipment(shipment)
        assert resp.status_label == "Tentativa de Entrega"

    def test_unknown_status_gets_title_case_label(self) -> None:
        shipment = SimpleNamespace(
            id="s-1",
            tracking_code="EX1",
            status="EM_ANALISE",
            motorista_id=None,
            price=None,
            billable_weight=None,
        )
        assert ShipmentResponse.from_shipment(shipment).status_label == "Em Analise"

    def test_b2b_response_uses_derived_status(self) -> None:
        shipment = SimpleNamespace(
            id="b-1",
            tracking_code="B2B1",
            status="ENTREGUE",
            motorista_id="m-1",
            volume_count=0,
            total_weight=Decimal(0),
        )
        view = B2BShipmentView(shipment=shipment, volumes=[], status="CONCLUIDO")
        resp = B2BShipmentResponse.from_view(view)
        assert resp.status == "CONCLUIDO"
        assert resp.stored_status == "ENTREGUE"
        assert resp.status_label == "Concluído"
