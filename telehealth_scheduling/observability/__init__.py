"""Observability module for scheduling telemetry."""

from telehealth_scheduling.observability.events import (
    BookingEvent,
    CacheInvalidationEvent,
    EventType,
    ObservabilityEvent,
    SlotFetchEvent,
)
from telehealth_scheduling.observability.logger import (
    ObservabilityLogger,
    get_observability_logger,
    mask_contact,
)

__all__ = [
    "BookingEvent",
    "CacheInvalidationEvent",
    "EventType",
    "ObservabilityEvent",
    "ObservabilityLogger",
    "SlotFetchEvent",
    "get_observability_logger",
    "mask_contact",
]
