"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from world_kernel.api.app import create_app
from world_kernel.models.config import EngineConfig
from world_kernel.oracle.rule_based import RuleBasedOracle
from world_kernel.persistence.store import SimulationStore
from world_kernel.scheduling.trigger import ManualTrigger


@pytest.fixture
def client():
    """Create a test client with fresh components."""
    app = create_app(
        store=SimulationStore(db_path=":memory:"),
        oracle=RuleBasedOracle(),
        trigger=ManualTrigger(),
        config=EngineConfig(random_event_probability=0.0),
    )
    return TestClient(app)


def _create(client, **body) -> str:
    response = client.post("/simulations", json=body)
    assert response.status_code == 200
    return response.json()["simulation_id"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"
        assert response.json()["active_simulations"] == 0


class TestSimulationEndpoints:
    def test_create_simulation(self, client):
        response = client.post("/simulations", json={"tick_interval_minutes": 10})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "RUNNING"
        assert data["world_name"] == "Terra Novus"
        assert data["countries"] == 5
        assert data["tick_interval_minutes"] == 10
        assert client.get("/health").json()["active_simulations"] == 1

    def test_create_without_countries_rejected(self, client):
        response = client.post("/simulations", json={"countries": []})
        assert response.status_code == 400

    def test_invalid_request(self, client):
        response = client.post("/simulations", json={"tick_interval_minutes": 0})
        assert response.status_code == 422

    def test_list_simulations(self, client):
        sim_id = _create(client)
        response = client.get("/simulations")
        assert response.status_code == 200
        assert [s["simulation_id"] for s in response.json()["simulations"]] == [sim_id]

    def test_state(self, client):
        sim_id = _create(client)
        response = client.get(f"/simulations/{sim_id}/state")
        assert response.status_code == 200
        data = response.json()
        assert data["tick"] == 1
        assert len(data["countries"]) == 5

    def test_unknown_simulation(self, client):
        assert client.get("/simulations/sim_nope/state").status_code == 404
        assert client.get("/simulations/sim_nope/logs").status_code == 404
        assert client.get("/simulations/sim_nope/report").status_code == 404
        assert client.post("/simulations/sim_nope/pause").status_code == 404
        assert client.post("/simulations/sim_nope/resume").status_code == 404
        assert client.post("/simulations/sim_nope/tick").status_code == 404


class TestControlEndpoints:
    def test_pause_resume(self, client):
        sim_id = _create(client)
        response = client.post(f"/simulations/{sim_id}/pause")
        assert response.status_code == 200
        assert response.json()["status"] == "PAUSED"

        assert client.post(f"/simulations/{sim_id}/tick").status_code == 409

        response = client.post(f"/simulations/{sim_id}/resume")
        assert response.status_code == 200
        assert response.json()["status"] == "RUNNING"
        assert client.get(f"/simulations/{sim_id}/state").json()["tick"] == 2

    def test_manual_tick(self, client):
        sim_id = _create(client, start=False)
        response = client.post(f"/simulations/{sim_id}/tick")
        assert response.status_code == 200
        assert response.json()["tick"] == 1
        assert response.json()["year"] == 1


class TestInspectionEndpoints:
    def test_logs(self, client):
        sim_id = _create(client)
        response = client.get(f"/simulations/{sim_id}/logs")
        assert response.status_code == 200
        data = response.json()
        types = {log["type"] for log in data["logs"]}
        assert {"SIMULATION_START", "TICK_SUMMARY"} <= types
        assert data["count"] == len(data["logs"])

    def test_logs_filtered_by_type(self, client):
        sim_id = _create(client)
        client.post(f"/simulations/{sim_id}/tick")
        response = client.get(f"/simulations/{sim_id}/logs", params={"type": "TICK_SUMMARY", "limit": 1})
        data = response.json()
        assert data["count"] == 1
        assert data["logs"][0]["type"] == "TICK_SUMMARY"
        assert data["logs"][0]["tick"] == 1

    def test_report(self, client):
        sim_id = _create(client)
        response = client.get(f"/simulations/{sim_id}/report")
        assert response.status_code == 200
        report = response.json()
        assert report["simulation_id"] == sim_id
        assert report["final_state"]["total_countries"] == 5
        assert report["years"] == 1
        assert len(report["countries"]) == 5
