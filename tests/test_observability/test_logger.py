"""Tests for observability logger."""

import json

import pytest
from unittest.mock import MagicMock

from telehealth_scheduling.observability import (
    EventType,
    ObservabilityLogger,
    SlotFetchEvent,
    get_observability_logger,
    mask_contact,
)


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create temporary log directory."""
    log_dir = tmp_path / "obs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def obs_logger(temp_log_dir):
    """Create observability logger with temp directory."""
    return ObservabilityLogger(log_dir=temp_log_dir, enabled=True)


def _read(path):
    return [json.loads(line) for line in path.read_text().strip().split("\n")]


class TestObservabilityLogger:
    """Tests for ObservabilityLogger."""

    def test_init_creates_log_directory(self, tmp_path):
        """Test that init creates log directory if needed."""
        log_dir = tmp_path / "new_logs"
        ObservabilityLogger(log_dir=log_dir)

        assert log_dir.exists()

    def test_disabled_logger_writes_nothing(self, temp_log_dir):
        """Test that disabled logger doesn't write."""
        logger = ObservabilityLogger(log_dir=temp_log_dir, enabled=False)

        with logger.slot_fetch("ther-1", "calendar/availability-slots") as event:
            event.slot_count = 3

        assert not (temp_log_dir / "slot_fetches.jsonl").exists()

    def test_slot_fetch_success(self, obs_logger, temp_log_dir):
        """Test logging a successful slot fetch."""
        with obs_logger.slot_fetch("ther-1", "calendar/availability-slots", timezone="UTC") as event:
            event.slot_count = 4
            event.has_more = True

        events = _read(temp_log_dir / "slot_fetches.jsonl")
        assert len(events) == 1
        assert events[0]["event_type"] == "slot_fetch_success"
        assert events[0]["practitioner_id"] == "ther-1"
        assert events[0]["slot_count"] == 4
        assert events[0]["has_more"] is True
        assert events[0]["duration_ms"] is not None

    def test_slot_fetch_error(self, obs_logger, temp_log_dir):
        """Test that exceptions are recorded and re-raised."""
        with pytest.raises(RuntimeError):
            with obs_logger.slot_fetch("ther-1", "k"):
                raise RuntimeError("backend down")

        events = _read(temp_log_dir / "slot_fetches.jsonl")
        assert events[0]["event_type"] == "slot_fetch_error"
        assert events[0]["error_type"] == "RuntimeError"
        assert events[0]["error_message"] == "backend down"

    def test_booking_masks_requester(self, obs_logger, temp_log_dir):
        """Test that booking events never carry the full contact."""
        with obs_logger.booking_submit("secure", "slot-1", "pat@example.com") as event:
            event.invalidated_keys = 2

        events = _read(temp_log_dir / "bookings.jsonl")
        assert events[0]["event_type"] == "booking_submit_success"
        assert events[0]["requester"] == "p***@example.com"
        assert events[0]["invalidated_keys"] == 2
        assert "pat@example.com" not in (temp_log_dir / "bookings.jsonl").read_text()

    def test_cache_invalidation(self, obs_logger, temp_log_dir):
        obs_logger.log_cache_invalidation("slot-requests/pat@example.com", 3)

        events = _read(temp_log_dir / "cache.jsonl")
        assert events[0]["event_type"] == "cache_invalidation"
        assert events[0]["matched_entries"] == 3

    def test_session_id_attached(self, obs_logger, temp_log_dir):
        obs_logger.set_session_id("sess-42")
        obs_logger.log_cache_invalidation("calendar", 0)

        assert _read(temp_log_dir / "cache.jsonl")[0]["session_id"] == "sess-42"

    def test_callbacks_receive_events(self, obs_logger):
        """Test real-time callbacks, including a failing one."""
        received = MagicMock()
        obs_logger.add_callback(MagicMock(side_effect=RuntimeError("bad callback")))
        obs_logger.add_callback(received)

        with obs_logger.slot_fetch("ther-1", "k"):
            pass

        event = received.call_args.args[0]
        assert isinstance(event, SlotFetchEvent)
        assert event.event_type == EventType.SLOT_FETCH_SUCCESS

    def test_recent_events_and_stats(self, obs_logger):
        for _ in range(3):
            with obs_logger.slot_fetch("ther-1", "k"):
                pass
        with pytest.raises(ValueError):
            with obs_logger.slot_fetch("ther-1", "k"):
                raise ValueError("bad")

        assert len(obs_logger.get_recent_events("slots", limit=2)) == 2
        stats = obs_logger.get_stats("slots")
        assert stats["total"] == 4
        assert stats["errors"] == 1
        assert stats["error_rate"] == 0.25

    def test_stats_empty(self, obs_logger):
        assert obs_logger.get_stats("bookings") == {"total": 0}

    def test_request_ids_unique(self, obs_logger):
        assert obs_logger.generate_request_id() != obs_logger.generate_request_id()


class TestGlobalLogger:
    def test_singleton(self):
        assert get_observability_logger() is get_observability_logger()


class TestMaskContact:
    @pytest.mark.parametrize(
        "contact,expected",
        [
            ("pat@example.com", "p***@example.com"),
            ("x@y.org", "x***@y.org"),
            ("noatsign", "n***"),
        ],
    )
    def test_mask(self, contact, expected):
        assert mask_contact(contact) == expected
