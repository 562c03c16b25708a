from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fleet_telemetry.current_state import CurrentStateUpserter
from fleet_telemetry.main import create_app

METER = {
    "type": "METER",
    "payload": {"meterId": "MTR-001", "kwhConsumedAc": 125.0, "voltage": 240.0, "timestamp": "2026-02-04T10:30:00Z"},
}
VEHICLE = {
    "type": "VEHICLE",
    "payload": {
        "vehicleId": "VEH-001",
        "soc": 80,
        "kwhDeliveredDc": 100.0,
        "batteryTemp": 30.0,
        "timestamp": "2026-02-04T10:30:00Z",
    },
}


@pytest.fixture
def client(session_factory):
    return TestClient(create_app(session_factory))


def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_ingest_and_query_performance(client) -> None:
    for body in (METER, VEHICLE):
        resp = client.post("/v1/telemetry/ingest", json=body)
        assert resp.status_code == 202
        assert resp.json()["success"] is True
        assert resp.json()["timestamp"].endswith("Z")

    resp = client.get(
        "/v1/analytics/performance/VEH-001",
        params={"startDate": "2026-02-04T10:00:00Z", "endDate": "2026-02-04T11:00:00Z"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["vehicleId"] == "VEH-001"
    assert body["energyMetrics"] == {
        "totalAcConsumed": 125.0,
        "totalDcDelivered": 100.0,
        "efficiencyRatio": 0.8,
        "powerLoss": 25.0,
    }
    assert body["batteryMetrics"]["avgTemperature"] == 30.0
    assert len(body["hourlyBreakdown"]) == 1


def test_unknown_vehicle_is_404(client) -> None:
    resp = client.get("/v1/analytics/performance/VEH-404")
    assert resp.status_code == 404
    assert "VEH-404" in resp.json()["detail"]


@pytest.mark.parametrize(
    "body",
    [
        {"type": "SOLAR", "payload": METER["payload"]},
        {"type": "METER", "payload": {**METER["payload"], "voltage": 501}},
        {"type": "METER", "payload": {**METER["payload"], "kwhConsumedAc": -1}},
        {"type": "VEHICLE", "payload": {**VEHICLE["payload"], "soc": 101}},
        {"type": "VEHICLE", "payload": {**VEHICLE["payload"], "batteryTemp": -41}},
        {"type": "VEHICLE", "payload": METER["payload"]},
        {"type": "METER", "payload": {**METER["payload"], "timestamp": "yesterday"}},
    ],
)
def test_invalid_requests_are_rejected_before_ingestion(client, body) -> None:
    resp = client.post("/v1/telemetry/ingest", json=body)
    assert resp.status_code == 422


# httpx refuses to encode non-finite floats, so these go in as raw JSON text
@pytest.mark.parametrize(
    "raw",
    [
        '{"type": "METER", "payload": {"meterId": "MTR-001", "kwhConsumedAc": Infinity, "voltage": 240.0, "timestamp": "2026-02-04T10:30:00Z"}}',
        '{"type": "METER", "payload": {"meterId": "MTR-001", "kwhConsumedAc": 125.0, "voltage": NaN, "timestamp": "2026-02-04T10:30:00Z"}}',
        '{"type": "VEHICLE", "payload": {"vehicleId": "VEH-001", "soc": 80, "kwhDeliveredDc": Infinity, "batteryTemp": 30.0, "timestamp": "2026-02-04T10:30:00Z"}}',
        '{"type": "VEHICLE", "payload": {"vehicleId": "VEH-001", "soc": 80, "kwhDeliveredDc": 100.0, "batteryTemp": NaN, "timestamp": "2026-02-04T10:30:00Z"}}',
    ],
)
def test_non_finite_numbers_are_rejected(client, raw) -> None:
    resp = client.post("/v1/telemetry/ingest", content=raw, headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
    resp = client.get("/v1/analytics/performance/VEH-001")
    assert resp.status_code == 404


def test_storage_failure_is_500(client, monkeypatch) -> None:
    def boom(self, reading):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(CurrentStateUpserter, "upsert_meter", boom)

    resp = client.post("/v1/telemetry/ingest", json=METER)

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
