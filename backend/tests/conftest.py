"""Pytest configuration and shared fixtures."""
import json

import pytest
import pytest_asyncio

from experiment_server.config import AppSettings
from experiment_server.services import ReportAggregator

from tests.helpers import FakeTransport


@pytest.fixture
def transport():
    """A transport that always delivers."""
    return FakeTransport()


@pytest.fixture
def failing_transport():
    """A transport that reports failure for every send."""
    return FakeTransport(fail=True)


@pytest.fixture
def raw_settings():
    """Settings file contents, as the field team writes them."""
    return {
        "Port": "8080",
        "ReportHours": [9, 17],
        "Sender": "experiment-server@example.org",
        "To": ["ops@example.org", "pi@example.org"],
        "SMTPHost": "smtp.example.org",
        "SMTPPort": 587,
        "SMTPUser": "experiment-server@example.org",
        "SMTPPassphrase": "app-password",
    }


@pytest.fixture
def settings(raw_settings):
    return AppSettings.model_validate(raw_settings)


@pytest.fixture
def config_file(tmp_path, raw_settings):
    """Write the settings to a file and return its path."""
    path = tmp_path / "app.cfg"
    path.write_text(json.dumps(raw_settings), encoding="utf-8")
    return path


@pytest.fixture
def valid_submission():
    """A complete submission payload."""
    return {
        "Beacon Address": "C4:7C:8D:6A:11:02",
        "Session Number": 1,
        "Datetime": "2024-05-02T09:13:00Z",
        "TimeStart": 0,
        "TimeEnd": 600,
        "MaxTemp": 24.1,
        "MinTemp": 21.7,
        "AvgTemp": 22.9,
        "AvgHumidity": 41.0,
        "SensorLog": [
            {"Datetime": "2024-05-02T09:03:00Z", "Data": [51.2, 1012.3, 22.8, 40.1, 310.0]},
            {"Datetime": "2024-05-02T09:04:00Z", "Data": [49.8, 1012.1, 22.9, 40.3, 305.5]},
        ],
        "SurveyResults": [3, 1, 0, 1],
    }


@pytest_asyncio.fixture
async def make_aggregator():
    """
    Build started aggregators and shut them down after the test.

    The periodic clock is off unless with_clock=True, so tests drive
    tick() themselves.
    """
    created = []

    def _make(transport, report_hours=(9,), with_clock=False, **kwargs):
        aggregator = ReportAggregator(transport, report_hours, **kwargs)
        aggregator.start(with_clock=with_clock)
        created.append(aggregator)
        return aggregator

    yield _make

    for aggregator in created:
        await aggregator.shutdown()
