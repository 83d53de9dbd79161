"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from telehealth_scheduling.cache import QueryCache
from telehealth_scheduling.config import get_settings
from telehealth_scheduling.observability import ObservabilityLogger
from telehealth_scheduling.scheduling.models import AvailabilitySlot, SlotStatus


@pytest.fixture(autouse=True)
def isolated_observability(tmp_path):
    """Route observability events to a temp directory for every test."""
    get_settings.cache_clear()
    ObservabilityLogger._instance = ObservabilityLogger(log_dir=tmp_path / "logs", enabled=True)
    yield ObservabilityLogger._instance
    ObservabilityLogger._instance = None
    get_settings.cache_clear()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(stale_time=60, gc_time=600, clock=clock)


@pytest.fixture
def mock_client():
    """Create a mock API client."""
    client = MagicMock()
    client.get = AsyncMock()
    client.post = AsyncMock()
    client.put = AsyncMock()
    client.delete = AsyncMock()
    client.aclose = AsyncMock()
    return client


def make_slot(
    slot_id: str = "slot-1",
    start: datetime = datetime(2024, 2, 5, 9, 0, tzinfo=timezone.utc),
    minutes: int = 60,
    status: SlotStatus = SlotStatus.AVAILABLE,
    practitioner_id: str = "ther-1",
) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=slot_id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        status=status,
        practitioner_id=practitioner_id,
    )


def slot_record(slot_id: str, start_iso: str, end_iso: str, status: str = "Available") -> dict:
    """A raw availability record as the backend returns it."""
    return {
        "id": slot_id,
        "tenant_id": "tenant-1",
        "therapist_id": "ther-1",
        "start_time": start_iso,
        "end_time": end_iso,
        "status": status,
        "therapist": {"id": "ther-1", "user": {"first_name": "Ada", "last_name": "Lovelace"}},
    }


@pytest.fixture
def availability_body():
    """Backend response for a day with two slots (out of order)."""
    return {
        "success": True,
        "message": "ok",
        "data": [
            slot_record("slot-2", "2024-02-05T10:00:00.000Z", "2024-02-05T11:00:00.000Z"),
            slot_record("slot-1", "2024-02-05T09:00:00.000Z", "2024-02-05T10:00:00.000Z"),
        ],
    }


@pytest.fixture
def slot_factory():
    """Factory for AvailabilitySlot instances."""
    return make_slot


@pytest.fixture
def record_factory():
    """Factory for raw backend slot records."""
    return slot_record
