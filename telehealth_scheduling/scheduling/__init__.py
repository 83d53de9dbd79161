"""Scheduling and availability engine."""

from telehealth_scheduling.scheduling.models import (
    AvailabilitySlot,
    BookingRequest,
    BookingResult,
    CalendarDay,
    DateRange,
    SessionWindowDecision,
    SlotOption,
    SlotPage,
    SlotStatus,
    TimeWindow,
)
from telehealth_scheduling.scheduling.calendar import (
    generate_month_grid,
    get_week_dates,
    generate_time_slots,
    month_grid_rows,
    shift_month,
)
from telehealth_scheduling.scheduling.session_window import can_start_session, end_warning_offset
from telehealth_scheduling.scheduling.query_keys import (
    BookingKeys,
    CalendarKeys,
    MutationKeys,
    QueryKey,
    QueryParams,
    key_matches,
    query_key,
)
from telehealth_scheduling.scheduling.slot_store import AvailabilitySlotStore
from telehealth_scheduling.scheduling.booking import (
    BookingError,
    BookingFlowError,
    BookingRequestDispatcher,
    BookingSubmissionError,
    BookingVariant,
    DuplicateSubmissionError,
)
from telehealth_scheduling.scheduling.flow import BookingFlow, BookingState
from telehealth_scheduling.scheduling.availability import AvailabilityUpdateError, PractitionerAvailability
from telehealth_scheduling.scheduling.context import Actor, Role, resolve_calendar_owner, resolve_timezone

__all__ = [
    "Actor",
    "AvailabilitySlot",
    "AvailabilitySlotStore",
    "AvailabilityUpdateError",
    "BookingError",
    "BookingFlow",
    "BookingFlowError",
    "BookingKeys",
    "BookingRequest",
    "BookingRequestDispatcher",
    "BookingResult",
    "BookingState",
    "BookingSubmissionError",
    "BookingVariant",
    "CalendarDay",
    "CalendarKeys",
    "DateRange",
    "DuplicateSubmissionError",
    "MutationKeys",
    "PractitionerAvailability",
    "QueryKey",
    "QueryParams",
    "Role",
    "SessionWindowDecision",
    "SlotOption",
    "SlotPage",
    "SlotStatus",
    "TimeWindow",
    "can_start_session",
    "end_warning_offset",
    "generate_month_grid",
    "generate_time_slots",
    "get_week_dates",
    "key_matches",
    "month_grid_rows",
    "query_key",
    "resolve_calendar_owner",
    "resolve_timezone",
    "shift_month",
]
