"""Deterministic cache keys for calendar, availability and booking queries.

A key is a plain tuple. ``None`` segments are dropped, and mapping
segments are frozen into :class:`QueryParams`, which compares structurally
(key order does not matter, ``None`` entries are dropped). Two logically
identical queries therefore always derive equal, hashable keys.
"""

from collections.abc import Hashable, Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

QueryKey = tuple[Hashable, ...]


class FrozenBool:
    """A boolean key value that never equals ``0`` or ``1``."""

    __slots__ = ("value",)

    def __init__(self, value: bool):
        self.value = value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FrozenBool) and other.value is self.value

    def __hash__(self) -> int:
        return hash((FrozenBool, self.value))

    def __repr__(self) -> str:
        return repr(self.value)


class QueryParams(tuple):
    """Immutable, hashable view of a filter mapping.

    Stored as sorted ``(name, value)`` pairs so equality is structural.
    """

    __slots__ = ()

    @classmethod
    def freeze(cls, value: Any) -> Any:
        """Recursively turn mappings and sequences into hashable values."""
        if isinstance(value, QueryParams):
            return value
        if isinstance(value, Mapping):
            items = (
                (str(k), cls.freeze(v))
                for k, v in value.items()
                if v is not None
            )
            return cls(tuple(sorted(items, key=lambda kv: kv[0])))
        if isinstance(value, (list, tuple, set, frozenset)):
            frozen = tuple(cls.freeze(v) for v in value)
            if isinstance(value, (set, frozenset)):
                frozen = tuple(sorted(frozen, key=repr))
            return frozen
        if isinstance(value, bool):
            return FrozenBool(value)
        if isinstance(value, Enum):
            return cls.freeze(value.value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value

    def as_dict(self) -> dict[str, Any]:
        return {k: v.value if isinstance(v, FrozenBool) else v for k, v in self}

    def issuperset_of(self, other: "QueryParams") -> bool:
        """True when every entry of *other* is present here with an equal value."""
        mine = dict(self)
        return all(k in mine and _segment_matches(mine[k], v) for k, v in other)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self)
        return f"QueryParams({inner})"


def query_key(*segments: Any) -> QueryKey:
    """Build a key from *segments*, dropping ``None`` and freezing mappings."""
    return tuple(QueryParams.freeze(s) for s in segments if s is not None)


def _segment_matches(actual: Any, expected: Any) -> bool:
    if isinstance(actual, QueryParams) and isinstance(expected, QueryParams):
        return actual.issuperset_of(expected)
    return actual == expected


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    """Prefix match used for invalidation.

    Plain segments must be equal; a params segment in *prefix* matches any
    params segment that contains all of its entries, so ``{}`` matches every
    filter combination and ``{"practitioner_id": "t1"}`` matches only that
    practitioner's queries.
    """
    if len(prefix) > len(key):
        return False
    return all(_segment_matches(a, e) for a, e in zip(key, prefix))


def format_key(key: QueryKey) -> str:
    """Readable form for logs."""
    return "/".join(repr(s) if isinstance(s, QueryParams) else str(s) for s in key)


class CalendarKeys:
    """Keys for calendar, availability and appointment queries."""

    ROOT = "calendar"
    AVAILABILITY_SLOTS = "availability-slots"
    MONTH = "month"
    APPOINTMENTS = "appointments"
    APPOINTMENT_DETAIL = "appointment-detail"
    CLIENT_THERAPIST_APPOINTMENTS = "client-therapist-appointments"

    @classmethod
    def all(cls) -> QueryKey:
        return query_key(cls.ROOT)

    @classmethod
    def availability_slots(cls, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return query_key(cls.ROOT, cls.AVAILABILITY_SLOTS, params)

    @classmethod
    def month(
        cls,
        practitioner_id: Optional[str] = None,
        year: Optional[int] = None,
        month_index: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> QueryKey:
        """A practitioner's calendar for one month.

        Trailing arguments may be omitted to build a broader prefix.
        """
        return query_key(cls.ROOT, cls.MONTH, practitioner_id, year, month_index, timezone)

    @classmethod
    def appointments(cls, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return query_key(cls.ROOT, cls.APPOINTMENTS, params)

    @classmethod
    def appointment_detail(cls, appointment_id: Optional[str] = None) -> QueryKey:
        return query_key(cls.ROOT, cls.APPOINTMENT_DETAIL, appointment_id)

    @classmethod
    def client_therapist_appointments(cls, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return query_key(cls.ROOT, cls.CLIENT_THERAPIST_APPOINTMENTS, params)


class BookingKeys:
    """Keys scoped to a booking requester's identity."""

    ROOT = "slot-requests"

    @classmethod
    def all(cls) -> QueryKey:
        return query_key(cls.ROOT)

    @classmethod
    def requester(cls, contact: Optional[str] = None) -> QueryKey:
        return query_key(cls.ROOT, contact.strip().lower() if contact else None)

    @classmethod
    def requests(cls, contact: str, params: Optional[Mapping[str, Any]] = None) -> QueryKey:
        return query_key(*cls.requester(contact), "list", params)


class MutationKeys:
    """Keys identifying in-flight mutations."""

    @staticmethod
    def create_booking(variant: Optional[str] = None) -> QueryKey:
        return query_key("create-booking", variant)

    @staticmethod
    def cancel_appointment(appointment_id: Optional[str] = None) -> QueryKey:
        return query_key("cancel-appointment", appointment_id)
