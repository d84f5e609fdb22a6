"""Shipment route tests."""

from __future__ import annotations

from litestar.testing import TestClient

from conftest import InMemoryShipmentRepo, InMemoryStorage, b64
from litestar_expresso.enums import ShipmentStatus

QUOTE = {
    "sender": {"name": "Loja", "cep": "01310-100", "state": "SP"},
    "recipient": {"name": "Cliente", "cep": "20040-002", "state": "RJ"},
    "package": {"weight": "1.2", "length": "20", "width": "15", "height": "10"},
    "price": "25.90",
}


class TestShipmentsHealthRoute:
    def test_health_returns_ok(self, client: TestClient) -> None:
        resp = client.get("/shipments/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestCreateShipmentRoute:
    def test_create_shipment_returns_201(
        self, client: TestClient, driver_headers: dict[str, str]
    ) -> None:
        resp = client.post("/shipments", json=QUOTE, headers=driver_headers)
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "PENDING_LABEL"
        assert body["status_label"] == "Aguardando Etiqueta"
        assert body["tracking_code"].startswith("EX")

    def test_anonymous_session_can_check_out(self, client: TestClient) -> None:
        resp = client.post(
            "/shipments", json=QUOTE, headers={"X-Session-Id": "sess-1"}
        )
        assert resp.status_code == 201

    def test_invalid_package_is_rejected(self, client: TestClient) -> None:
        payload = {**QUOTE, "package": {"weight": "0"}}
        resp = client.post(
            "/shipments", json=payload, headers={"X-Session-Id": "sess-1"}
        )
        assert resp.status_code == 400


class TestReadRoutes:
    def test_get_shipment(
        self, client: TestClient, repository: InMemoryShipmentRepo
    ) -> None:
        shipment = repository.seed(status=ShipmentStatus.EM_TRANSITO)
        resp = client.get(f"/shipments/{shipment.id}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "EM_TRANSITO"
        assert resp.json()["status_label"] == "Em Trânsito"

    def test_unknown_shipment_returns_404(self, client: TestClient) -> None:
        resp = client.get("/shipments/missing")
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"

    def test_history_lists_transitions(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed()
        client.post(f"/shipments/{shipment.id}/accept", headers=driver_headers)
        resp = client.get(f"/shipments/{shipment.id}/history")
        assert resp.status_code == 200
        [entry] = resp.json()
        assert entry["status"] == "COLETA_ACEITA"
        assert entry["motorista_id"] == "m-1"


class TestAcceptPickupRoute:
    def test_accept_pickup(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(status=ShipmentStatus.LABEL_GENERATED)
        resp = client.post(
            f"/shipments/{shipment.id}/accept", headers=driver_headers
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "COLETA_ACEITA"
        assert resp.json()["motorista_id"] == "m-1"

    def test_accept_in_wrong_state_returns_409(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(status=ShipmentStatus.EM_TRANSITO)
        resp = client.post(
            f"/shipments/{shipment.id}/accept", headers=driver_headers
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_state"

    def test_accept_without_actor_returns_401(
        self, client: TestClient, repository: InMemoryShipmentRepo
    ) -> None:
        shipment = repository.seed()
        resp = client.post(f"/shipments/{shipment.id}/accept")
        assert resp.status_code == 401


class TestOccurrenceRoute:
    def test_register_occurrence(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        resp = client.post(
            f"/shipments/{shipment.id}/occurrences",
            json={"type": "tentativa_entrega", "observations": "Portão fechado"},
            headers=driver_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "TENTATIVA_ENTREGA"

    def test_missing_observations_returns_422(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        resp = client.post(
            f"/shipments/{shipment.id}/occurrences",
            json={"type": "tentativa_entrega"},
            headers=driver_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "observations_required"
        assert repository.history == []


class TestFinalizeRoute:
    def test_finalize_with_photo(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        storage: InMemoryStorage,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        resp = client.post(
            f"/shipments/{shipment.id}/finalize",
            json={"evidence": {"photos": [{"content": b64()}]}},
            headers=driver_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "ENTREGA_FINALIZADA"
        assert len(storage.uploaded) == 1
        assert repository.occurrences[0].file_url.endswith(storage.uploaded[0])

    def test_finalize_without_photo_returns_422(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        resp = client.post(
            f"/shipments/{shipment.id}/finalize",
            json={"evidence": {"photos": []}},
            headers=driver_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "evidence_required"

    def test_finalize_by_other_driver_returns_409(
        self, client: TestClient, repository: InMemoryShipmentRepo
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        resp = client.post(
            f"/shipments/{shipment.id}/finalize",
            json={"evidence": {"photos": [{"content": b64()}]}},
            headers={"X-Actor-Id": "m-2", "X-Actor-Role": "motorista"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "driver_not_assigned"

    def test_database_failure_returns_503(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        storage: InMemoryStorage,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed(
            status=ShipmentStatus.EM_TRANSITO, motorista_id="m-1"
        )
        repository.fail_writes = True
        resp = client.post(
            f"/shipments/{shipment.id}/finalize",
            json={"evidence": {"photos": [{"content": b64()}]}},
            headers=driver_headers,
        )
        assert resp.status_code == 503
        assert storage.deleted == storage.uploaded


class TestStatusRoute:
    def test_admin_changes_status(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        admin_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed()
        resp = client.post(
            f"/shipments/{shipment.id}/status",
            json={"status": "LABEL_GENERATED"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "LABEL_GENERATED"

    def test_driver_gets_403(
        self,
        client: TestClient,
        repository: InMemoryShipmentRepo,
        driver_headers: dict[str, str],
    ) -> None:
        shipment = repository.seed()
        resp = client.post(
            f"/shipments/{shipment.id}/status",
            json={"status": "LABEL_GENERATED"},
            headers=driver_headers,
        )
        assert resp.status_code == 403

    def test_unknown_role_header_returns_401(
        self, client: TestClient, repository: InMemoryShipmentRepo
    ) -> None:
        shipment = repository.seed()
        resp = client.post(
            f"/shipments/{shipment.id}/status",
            json={"status": "LABEL_GENERATED"},
            headers={"X-Actor-Id": "x", "X-Actor-Role": "root"},
        )
        assert resp.status_code == 401
