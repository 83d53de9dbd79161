"""Practitioner availability slots and the booking actor's selection."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from telehealth_scheduling.api.client import ApiError
from telehealth_scheduling.config import get_settings
from telehealth_scheduling.observability import get_observability_logger
from telehealth_scheduling.scheduling.models import AvailabilitySlot, DateRange, SlotOption, SlotPage
from telehealth_scheduling.scheduling.options import slot_to_option, unwrap_page
from telehealth_scheduling.scheduling.query_keys import CalendarKeys, QueryKey, format_key

if TYPE_CHECKING:
    from telehealth_scheduling.api.client import ApiClient
    from telehealth_scheduling.cache.query_cache import QueryCache

logger = logging.getLogger(__name__)

_RENAMED_PARAMS = {"practitioner_id": "therapist_id", "start_date": "startDate", "end_date": "endDate"}

# Filters that scope the cache key but are not sent to the backend.
_KEY_ONLY_PARAMS = {"requester", "view"}


def parse_slot(item: Any) -> AvailabilitySlot:
    """Validate one backend availability record.

    Anything that is not a record (a string, a number, null) fails
    validation like any other malformed slot.
    """
    if isinstance(item, dict):
        item = {**item, "practitioner_id": item.get("therapist_id") or item.get("practitioner_id")}
    return AvailabilitySlot.model_validate(item)


class AvailabilitySlotStore:
    """Fetches, caches and selects availability slots for a booking flow.

    The slot list is a read-only copy of the cached query result; it is
    replaced wholesale on every fetch. Only the most recent fetch may update
    it: responses that resolve after the filters changed (or after
    :meth:`cancel`) are discarded.
    """

    def __init__(
        self,
        client: "ApiClient",
        cache: "QueryCache",
        timezone: Optional[str] = None,
        session_type: Optional[str] = None,
        requester_contact: Optional[str] = None,
        path: Optional[str] = None,
    ):
        """Initialize the store.

        Args:
            client: Backend API client
            cache: Shared query cache
            timezone: Viewing timezone sent with slot queries
            session_type: Session type filter (default from settings)
            requester_contact: Booking requester's email; scopes slot keys so
                a successful booking invalidates them
            path: Availability endpoint (default from settings)
        """
        settings = get_settings()
        self.client = client
        self.cache = cache
        self.timezone = timezone or settings.default_timezone
        self.session_type = session_type or settings.default_session_type
        self.requester_contact = requester_contact.strip().lower() if requester_contact else None
        self._path = path or settings.availability_path

        self.slots: list[AvailabilitySlot] = []
        self.has_more: bool = False
        self.error: Optional[str] = None
        self.selected: Optional[AvailabilitySlot] = None
        self._active_key: Optional[QueryKey] = None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def query_params(
        self,
        practitioner_id: Optional[str],
        date_range: Optional[DateRange],
        extra_filters: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Filter values that identify a slot query (and form its key)."""
        params: dict[str, Any] = {
            "practitioner_id": practitioner_id,
            "start_date": date_range.start.isoformat() if date_range else None,
            "end_date": date_range.end.isoformat() if date_range else None,
            "timezone": self.timezone,
            "session_type": self.session_type,
            "requester": self.requester_contact,
        }
        params.update(extra_filters or {})
        return params

    def query_key(
        self,
        practitioner_id: Optional[str],
        date_range: Optional[DateRange],
        extra_filters: Optional[dict[str, Any]] = None,
    ) -> QueryKey:
        return CalendarKeys.availability_slots(
            self.query_params(practitioner_id, date_range, extra_filters)
        )

    async def fetch_slots(
        self,
        practitioner_id: Optional[str],
        date_range: Optional[DateRange] = None,
        extra_filters: Optional[dict[str, Any]] = None,
    ) -> SlotPage:
        """Fetch slots for a practitioner and date range.

        Without a practitioner no request is made and an empty page is
        returned. Transport and parse failures are logged and reported as an
        empty page with ``error`` set.
        """
        if not practitioner_id:
            self._active_key = None
            self._commit(SlotPage())
            return SlotPage()

        key = self.query_key(practitioner_id, date_range, extra_filters)
        self._active_key = key
        params = self.query_params(practitioner_id, date_range, extra_filters)

        obs = get_observability_logger()
        with obs.slot_fetch(practitioner_id, format_key(key), timezone=self.timezone) as event:
            event.from_cache = not self.cache.is_stale(key)
            try:
                page = await self.cache.fetch(key, lambda: self._load(params))
            except (ApiError, ValidationError) as e:
                logger.error(f"Failed to fetch slots for practitioner {practitioner_id}: {e}")
                event.error_type = type(e).__name__
                event.error_message = str(e)[:200]
                page = SlotPage(data=[], has_more=False, error=str(e) or type(e).__name__)

            event.slot_count = len(page.data)
            event.has_more = page.has_more

            if self._active_key != key:
                logger.debug(f"Discarding stale slot response for {format_key(key)}")
                event.discarded = True
                return page

        self._commit(page)
        return page

    async def _load(self, params: dict[str, Any]) -> SlotPage:
        request_params = {
            _RENAMED_PARAMS.get(name, name): value
            for name, value in params.items()
            if name not in _KEY_ONLY_PARAMS
        }
        body = await self.client.get(self._path, params=request_params)
        items, has_more = unwrap_page(body)
        slots = [parse_slot(item) for item in items]
        slots.sort(key=lambda s: s.start_time)
        return SlotPage(data=slots, has_more=has_more)

    def _commit(self, page: SlotPage) -> None:
        self.slots = list(page.data)
        self.has_more = page.has_more
        self.error = page.error

    def cancel(self) -> None:
        """Abandon any in-flight fetch; its result will not be applied."""
        self._active_key = None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_slot(self, slot: AvailabilitySlot) -> None:
        """Select *slot*, replacing any previous selection."""
        self.selected = slot

    def clear_selection(self) -> None:
        self.selected = None

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def to_options(self, slots: Optional[list[AvailabilitySlot]] = None) -> list[SlotOption]:
        """Slots as ``{value, label}`` pairs labelled in the store's timezone."""
        source = self.slots if slots is None else slots
        return [slot_to_option(slot, self.timezone) for slot in source]
