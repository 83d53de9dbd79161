"""Pydantic models for the scheduling engine."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def load_zone(timezone: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ``ValueError`` if unknown."""
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {timezone!r}") from e


def _require_aware(value: datetime, field_name: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must be timezone-aware")
    return value


class SlotStatus(str, Enum):
    """Availability slot statuses."""

    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class TimeWindow(BaseModel):
    """Half-open interval ``[start, end)`` in absolute time.

    ``timezone`` only affects display and local arithmetic; the instants
    themselves are always timezone-aware.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        load_zone(v)
        return v

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindow":
        _require_aware(self.start, "start")
        _require_aware(self.end, "end")
        if self.start >= self.end:
            raise ValueError(
                f"TimeWindow start ({self.start.isoformat()}) must be before end "
                f"({self.end.isoformat()})"
            )
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def contains(self, instant: datetime) -> bool:
        """True when *instant* lies in ``[start, end)``."""
        _require_aware(instant, "instant")
        return self.start <= instant < self.end

    def localized(self) -> tuple[datetime, datetime]:
        """Return ``(start, end)`` converted into the window's timezone."""
        zone = self.zone
        return self.start.astimezone(zone), self.end.astimezone(zone)


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("DateRange start must not be after end")
        return self


class CalendarDay(BaseModel):
    """A single cell of a month grid."""

    model_config = ConfigDict(frozen=True)

    date: date
    in_current_month: bool
    start: datetime = Field(description="Local midnight of `date` in the grid's timezone")

    @property
    def day(self) -> int:
        return self.date.day


class AvailabilitySlot(BaseModel):
    """A bookable interval offered by a practitioner (read-only cached copy)."""

    model_config = ConfigDict(frozen=True)

    id: str
    start_time: datetime
    end_time: datetime
    status: SlotStatus = SlotStatus.AVAILABLE
    practitioner_id: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> Any:
        # Backend sends "Available", "Booked", ...
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def _check_times(self) -> "AvailabilitySlot":
        _require_aware(self.start_time, "start_time")
        _require_aware(self.end_time, "end_time")
        if self.start_time >= self.end_time:
            raise ValueError(f"Slot {self.id}: start_time must be before end_time")
        return self

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    def window(self, timezone: str = "UTC") -> TimeWindow:
        """View this slot as a TimeWindow displayed in *timezone*."""
        return TimeWindow(start=self.start_time, end=self.end_time, timezone=timezone)


class SlotOption(BaseModel):
    """Presentation-ready ``{value, label}`` pair."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class SlotPage(BaseModel):
    """One page of fetched data.

    ``error`` is set when the fetch failed; ``data`` is then empty and
    ``has_more`` is False, so lenient callers can ignore it.
    """

    data: list[Any] = []
    has_more: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class SessionWindowDecision(BaseModel):
    """Outcome of a join-window check."""

    blocked: bool
    minutes_until_start: float
    minutes_until_end: float


class BookingRequest(BaseModel):
    """Slot request built client-side and sent exactly once."""

    slot_id: str
    requester_contact: str = Field(description="Requester email, used to scope cache keys")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("requester_contact")
    @classmethod
    def _normalize_contact(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("requester_contact is required")
        return v

    def to_payload(self) -> dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "email": self.requester_contact,
            **self.metadata,
        }


class BookingResult(BaseModel):
    """Backend acknowledgement of a booking request."""

    success: bool = True
    message: str = ""
    data: Optional[Any] = None
    status_code: int = 200
