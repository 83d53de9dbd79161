"""Structured observability events for scheduling telemetry."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of observability events."""

    SLOT_FETCH_START = "slot_fetch_start"
    SLOT_FETCH_SUCCESS = "slot_fetch_success"
    SLOT_FETCH_ERROR = "slot_fetch_error"
    BOOKING_SUBMIT_START = "booking_submit_start"
    BOOKING_SUBMIT_SUCCESS = "booking_submit_success"
    BOOKING_SUBMIT_ERROR = "booking_submit_error"
    CACHE_INVALIDATION = "cache_invalidation"


class ObservabilityEvent(BaseModel):
    """Base class for all observability events."""

    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: Optional[str] = None
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SlotFetchEvent(ObservabilityEvent):
    """Event for availability slot fetches."""

    practitioner_id: Optional[str] = None
    query_key: str = ""
    timezone: Optional[str] = None

    # Populated on success
    slot_count: int = 0
    has_more: bool = False
    from_cache: bool = False
    discarded: bool = False

    # Error fields
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class BookingEvent(ObservabilityEvent):
    """Event for booking submissions."""

    variant: str
    slot_id: str
    requester: str = Field(description="Masked requester contact")

    status_code: Optional[int] = None
    invalidated_keys: int = 0

    error_type: Optional[str] = None
    error_message: Optional[str] = None


class CacheInvalidationEvent(ObservabilityEvent):
    """Event for cache invalidation."""

    event_type: EventType = EventType.CACHE_INVALIDATION
    query_key: str
    matched_entries: int = 0
