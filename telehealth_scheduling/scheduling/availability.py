"""Practitioner-side availability: the own-calendar view and slot edits."""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Optional

from pydantic import ValidationError

from telehealth_scheduling.api.client import ApiError
from telehealth_scheduling.config import get_settings
from telehealth_scheduling.scheduling.models import AvailabilitySlot, DateRange, SlotPage, SlotStatus, TimeWindow
from telehealth_scheduling.scheduling.options import unwrap_page
from telehealth_scheduling.scheduling.query_keys import CalendarKeys
from telehealth_scheduling.scheduling.slot_store import AvailabilitySlotStore, parse_slot

if TYPE_CHECKING:
    from telehealth_scheduling.api.client import ApiClient
    from telehealth_scheduling.cache.query_cache import QueryCache

logger = logging.getLogger(__name__)

DASHBOARD_VIEW = "dashboard"


class AvailabilityUpdateError(Exception):
    """Creating or removing availability slots failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PractitionerAvailability:
    """A practitioner managing their own availability.

    Writes are sent once and, only after the backend acknowledges them,
    invalidate every cached availability slot query so all calendar views
    refetch.
    """

    def __init__(
        self,
        client: "ApiClient",
        cache: "QueryCache",
        timezone: Optional[str] = None,
    ):
        """Initialize the availability manager.

        Args:
            client: Backend API client
            cache: Shared query cache
            timezone: Viewing timezone; the dashboard query waits until one is set
        """
        settings = get_settings()
        self.client = client
        self.cache = cache
        self.timezone = timezone
        self.path = settings.availability_path
        self.store = AvailabilitySlotStore(
            client,
            cache,
            timezone=timezone,
            path=settings.availability_dashboard_path,
        )

    async def fetch_own_slots(
        self,
        practitioner_id: Optional[str],
        date_range: Optional[DateRange],
    ) -> SlotPage:
        """Fetch the dashboard view of a practitioner's slots.

        No request is made until a timezone and both dates are known.
        """
        if not self.timezone or date_range is None:
            return SlotPage()
        return await self.store.fetch_slots(
            practitioner_id,
            date_range,
            extra_filters={"view": DASHBOARD_VIEW},
        )

    async def create_slots(
        self,
        practitioner_id: str,
        windows: list[TimeWindow],
        status: SlotStatus = SlotStatus.AVAILABLE,
    ) -> list[AvailabilitySlot]:
        """Publish new availability windows.

        Returns the created slots as echoed by the backend (empty if the
        echo cannot be parsed).

        Raises:
            AvailabilityUpdateError: The backend rejected the slots or could
                not be reached. Nothing is invalidated.
        """
        payload = [
            {
                "therapist_id": practitioner_id,
                "start_time": window.start.isoformat(),
                "end_time": window.end.isoformat(),
                "status": status.value.capitalize(),
                "timezone": window.timezone,
            }
            for window in windows
        ]
        body = await self._send("create", self.client.post(self.path, json={"data": payload}))
        logger.info(f"Created {len(payload)} availability slots for practitioner {practitioner_id}")

        items, _ = unwrap_page(body)
        try:
            return [parse_slot(item) for item in items]
        except ValidationError as e:
            logger.warning(f"Could not parse created slots for practitioner {practitioner_id}: {e}")
            return []

    async def remove_slots(self, slot_ids: list[str]) -> None:
        """Delete availability slots by id.

        Raises:
            AvailabilityUpdateError: The backend rejected the removal or
                could not be reached. Nothing is invalidated.
        """
        await self._send("remove", self.client.delete(self.path, json={"ids": list(slot_ids)}))
        logger.info(f"Removed {len(slot_ids)} availability slots")

    async def _send(self, action: str, request: Awaitable[Any]) -> Any:
        try:
            body = await request
        except ApiError as e:
            logger.error(f"Failed to {action} availability slots: {e}")
            raise AvailabilityUpdateError(str(e), status_code=e.status_code) from e

        if isinstance(body, dict) and body.get("success") is False:
            message = str(body.get("message") or f"Could not {action} availability slots")
            logger.error(message)
            raise AvailabilityUpdateError(message, status_code=body.get("statusCode"))

        # Invalidate only after the backend acknowledged the change.
        self.cache.invalidate(CalendarKeys.availability_slots())
        return body
