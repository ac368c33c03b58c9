"""Tests for the HTTP surface and startup wiring."""
import time

import pytest
from fastapi.testclient import TestClient

from experiment_server.config import ConfigError
from experiment_server.main import Config, create_app
from experiment_server.services import StartupError

from tests.helpers import FakeTransport, at


@pytest.fixture
def app_transport():
    return FakeTransport()


@pytest.fixture
def client(settings, app_transport):
    """A running app with the report clock switched off."""
    app = create_app(settings=settings, email_service=app_transport, start_clock=False)
    with TestClient(app) as client:
        yield client


def settled_status(client, attempts=100):
    """Read the status once the report loop has caught up with the queue."""
    for _ in range(attempts):
        status = client.get("/api/reports/status").json()
        if status["queued"] == 0:
            return status
        time.sleep(0.01)
    return status


class TestStartup:
    """Tests for the fail-fast startup checks."""

    def test_startup_sends_notification(self, client, app_transport):
        assert app_transport.startup_notifications == 1

    def test_failed_startup_mail_is_fatal(self, settings):
        transport = FakeTransport(startup_ok=False)
        app = create_app(settings=settings, email_service=transport, start_clock=False)

        with pytest.raises(StartupError):
            with TestClient(app):
                pass

    def test_missing_config_is_fatal(self, monkeypatch, tmp_path):
        monkeypatch.setattr(Config, "CONFIG_FILE", str(tmp_path / "missing.cfg"))
        app = create_app(email_service=FakeTransport(), start_clock=False)

        with pytest.raises(ConfigError):
            with TestClient(app):
                pass

    def test_config_loaded_from_file(self, monkeypatch, config_file, app_transport):
        monkeypatch.setattr(Config, "CONFIG_FILE", str(config_file))
        app = create_app(email_service=app_transport, start_clock=False)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.json()["report_hours"] == [9, 17]


class TestResultsEndpoints:
    """Tests for submission intake."""

    def test_results_ping(self, client):
        response = client.get("/results")
        assert response.status_code == 204

    def test_valid_submission(self, client, valid_submission):
        response = client.post("/results/pilot-study", json=valid_submission)

        assert response.status_code == 201
        assert response.json() == {"Success": True}

    def test_valid_submission_is_counted(self, client, valid_submission):
        client.post("/results/pilot-study", json=valid_submission)
        client.post("/results/pilot-study", json=valid_submission)
        valid_submission["Beacon Address"] = "AA:BB:CC:DD:EE:FF"
        client.post("/results/other-study", json=valid_submission)

        status = settled_status(client)

        assert status["counters"] == {"C4:7C:8D:6A:11:02": 2, "AA:BB:CC:DD:EE:FF": 1}
        assert status["pending_total"] == 3

    def test_invalid_json(self, client):
        response = client.post(
            "/results/pilot-study",
            content=b"{ this is not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["Success"] is False
        assert body["Error"]

    def test_wrong_field_type(self, client, valid_submission):
        valid_submission["Session Number"] = "first"
        response = client.post("/results/pilot-study", json=valid_submission)

        assert response.status_code == 400

    def test_empty_values(self, client, valid_submission):
        valid_submission["Beacon Address"] = ""
        response = client.post("/results/pilot-study", json=valid_submission)

        assert response.status_code == 412
        assert response.json() == {"Success": False, "Error": "Empty values"}

    def test_bad_sensor_sample(self, client, valid_submission):
        valid_submission["SensorLog"][0]["Data"] = [1.0, 2.0]
        response = client.post("/results/pilot-study", json=valid_submission)

        assert response.status_code == 412

    def test_rejected_submissions_are_not_counted(self, client, valid_submission):
        client.post("/results/pilot-study", content=b"nope")
        valid_submission["Datetime"] = ""
        client.post("/results/pilot-study", json=valid_submission)

        status = settled_status(client)

        assert status["counters"] == {}


class TestStatusEndpoints:
    """Tests for read-only endpoints."""

    def test_report_status(self, client):
        status = client.get("/api/reports/status").json()

        assert status["report_hours"] == [9, 17]
        assert status["last_sent_at"] is None
        assert status["last_dedupe_key"] is None
        assert status["queued"] == 0

    def test_status_answers_while_report_is_sending(self, settings):
        """A slow SMTP exchange doesn't hold up the status endpoint."""
        transport = FakeTransport(delay=1.0)
        app = create_app(settings=settings, email_service=transport, start_clock=False)

        with TestClient(app) as client:
            app.state.report_aggregator.tick(at(9, 0))
            time.sleep(0.05)

            started = time.monotonic()
            response = client.get("/api/reports/status")
            elapsed = time.monotonic() - started

        assert response.status_code == 200
        assert elapsed < 0.5
        assert len(transport.reports) == 1

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "report_hours": [9, 17]}

    def test_cors_allows_any_origin(self, client):
        response = client.get("/health", headers={"Origin": "https://field-app.example.org"})

        assert response.headers["access-control-allow-origin"] == "*"
