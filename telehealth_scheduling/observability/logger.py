"""Observability logger for structured scheduling telemetry."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Optional

from telehealth_scheduling.observability.events import (
    BookingEvent,
    CacheInvalidationEvent,
    EventType,
    ObservabilityEvent,
    SlotFetchEvent,
)

logger = logging.getLogger(__name__)


def mask_contact(contact: str) -> str:
    """Mask an email so events never carry the full address."""
    local, sep, domain = contact.partition("@")
    if not sep:
        return contact[:1] + "***"
    return f"{local[:1]}***@{domain}"


class ObservabilityLogger:
    """Central logger for scheduling observability events.

    Writes structured events to JSON Lines files for later analysis.
    """

    _instance: Optional["ObservabilityLogger"] = None

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
    ):
        """Initialize observability logger.

        Args:
            log_dir: Directory for log files (default: data/logs)
            enabled: Whether logging is enabled
        """
        self.enabled = enabled

        if log_dir is None:
            log_dir = Path("data/logs")
        self.log_dir = log_dir
        if self.enabled:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._log_files: dict[str, Path] = {
            "slots": self.log_dir / "slot_fetches.jsonl",
            "bookings": self.log_dir / "bookings.jsonl",
            "cache": self.log_dir / "cache.jsonl",
        }

        self._callbacks: list[Callable[[ObservabilityEvent], None]] = []
        self._current_session_id: Optional[str] = None

    @classmethod
    def get_instance(cls) -> "ObservabilityLogger":
        """Get or create singleton instance."""
        if cls._instance is None:
            from telehealth_scheduling.config import get_settings

            settings = get_settings()
            cls._instance = cls(
                log_dir=settings.observability_log_dir,
                enabled=settings.observability_enabled,
            )
        return cls._instance

    def set_session_id(self, session_id: str) -> None:
        """Set current session ID for event correlation."""
        self._current_session_id = session_id

    def generate_request_id(self) -> str:
        """Generate a unique request ID."""
        return str(uuid.uuid4())[:8]

    def add_callback(self, callback: Callable[[ObservabilityEvent], None]) -> None:
        """Add callback for real-time event monitoring."""
        self._callbacks.append(callback)

    def _write_event(self, event: ObservabilityEvent, log_type: str) -> None:
        """Write event to the appropriate log file."""
        if not self.enabled:
            return

        if self._current_session_id and not event.session_id:
            event.session_id = self._current_session_id

        try:
            log_file = self._log_files.get(log_type)
            if log_file:
                with open(log_file, "a") as f:
                    f.write(event.model_dump_json() + "\n")

            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(f"Observability callback failed: {e}")

        except Exception as e:
            logger.warning(f"Failed to write observability event: {e}")

    # Slot fetches

    @contextmanager
    def slot_fetch(
        self,
        practitioner_id: Optional[str],
        query_key: str,
        timezone: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """Context manager for logging a slot fetch.

        Usage:
            with obs.slot_fetch(practitioner_id, format_key(key)) as event:
                page = await load()
                event.slot_count = len(page.data)
        """
        start_time = time.time()
        event = SlotFetchEvent(
            event_type=EventType.SLOT_FETCH_START,
            practitioner_id=practitioner_id,
            query_key=query_key,
            timezone=timezone,
            request_id=request_id or self.generate_request_id(),
        )

        try:
            yield event
            event.event_type = EventType.SLOT_FETCH_SUCCESS

        except Exception as e:
            event.event_type = EventType.SLOT_FETCH_ERROR
            event.error_type = type(e).__name__
            event.error_message = str(e)[:200]
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "slots")

    # Bookings

    @contextmanager
    def booking_submit(
        self,
        variant: str,
        slot_id: str,
        requester_contact: str,
        request_id: Optional[str] = None,
    ):
        """Context manager for logging a booking submission."""
        start_time = time.time()
        event = BookingEvent(
            event_type=EventType.BOOKING_SUBMIT_START,
            variant=variant,
            slot_id=slot_id,
            requester=mask_contact(requester_contact),
            request_id=request_id or self.generate_request_id(),
        )

        try:
            yield event
            event.event_type = EventType.BOOKING_SUBMIT_SUCCESS

        except Exception as e:
            event.event_type = EventType.BOOKING_SUBMIT_ERROR
            event.error_type = type(e).__name__
            event.error_message = str(e)[:200]
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "bookings")

    # Cache

    def log_cache_invalidation(self, query_key: str, matched_entries: int) -> None:
        """Log a cache invalidation."""
        event = CacheInvalidationEvent(query_key=query_key, matched_entries=matched_entries)
        self._write_event(event, "cache")

    # Utility methods

    def get_recent_events(
        self,
        log_type: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Read recent events from a log file."""
        log_file = self._log_files.get(log_type)
        if not log_file or not log_file.exists():
            return []

        events = []
        with open(log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def get_stats(self, log_type: str) -> dict[str, Any]:
        """Get basic statistics for a log type."""
        events = self.get_recent_events(log_type, limit=1000)
        if not events:
            return {"total": 0}

        total = len(events)
        errors = sum(1 for e in events if "error" in e.get("event_type", ""))
        avg_duration = sum(e.get("duration_ms") or 0 for e in events) / total

        return {
            "total": total,
            "errors": errors,
            "error_rate": errors / total if total > 0 else 0,
            "avg_duration_ms": avg_duration,
        }


def get_observability_logger() -> ObservabilityLogger:
    """Get the global observability logger instance."""
    return ObservabilityLogger.get_instance()
