import pytest
from .fakes import TELEMETRY_CSV, FakeInsightClient


@pytest.fixture
def telemetry_csv() -> bytes:
    return TELEMETRY_CSV


@pytest.fixture
def fake_client() -> FakeInsightClient:
    return FakeInsightClient()
