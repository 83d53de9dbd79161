"""Booking request submission and the cache invalidation that follows it."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from telehealth_scheduling.api.client import ApiError
from telehealth_scheduling.config import get_settings
from telehealth_scheduling.observability import get_observability_logger, mask_contact
from telehealth_scheduling.scheduling.models import BookingRequest, BookingResult
from telehealth_scheduling.scheduling.query_keys import BookingKeys, CalendarKeys, QueryKey

if TYPE_CHECKING:
    from telehealth_scheduling.api.client import ApiClient
    from telehealth_scheduling.cache.query_cache import QueryCache

logger = logging.getLogger(__name__)


class BookingVariant(str, Enum):
    """Booking endpoints."""

    DEMO = "demo"  # public, unauthenticated
    SECURE = "secure"  # requires a signed-in requester


class BookingError(Exception):
    """Base exception for booking errors."""

    pass


class BookingSubmissionError(BookingError):
    """The backend rejected the booking or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DuplicateSubmissionError(BookingError):
    """A submission is already in flight for this booking flow."""

    pass


class BookingFlowError(BookingError):
    """Action not allowed in the current booking state."""

    pass


def invalidation_keys(requester_contact: str) -> list[QueryKey]:
    """Cached queries a booking makes stale.

    The requester's own requests, plus every availability slot query: the
    booked slot must disappear from all views of the practitioner's
    calendar, whoever fetched them. The prefixes do not overlap, so each
    cached entry is invalidated once.
    """
    contact = requester_contact.strip().lower()
    return [
        BookingKeys.requester(contact),
        CalendarKeys.availability_slots(),
    ]


class BookingRequestDispatcher:
    """Submits slot requests and invalidates the queries a booking makes stale.

    The dispatcher keeps no per-call state and does not deduplicate
    concurrent identical submissions; :class:`BookingFlow` guards against
    double submission.
    """

    def __init__(
        self,
        client: "ApiClient",
        cache: "QueryCache",
        variant: BookingVariant = BookingVariant.SECURE,
    ):
        settings = get_settings()
        self.client = client
        self.cache = cache
        self.variant = BookingVariant(variant)
        self.path = (
            settings.demo_booking_path
            if self.variant == BookingVariant.DEMO
            else settings.secure_booking_path
        )

    async def submit(self, request: BookingRequest) -> BookingResult:
        """Send *request* once.

        Raises:
            BookingSubmissionError: On transport or backend failure. Nothing
                is invalidated and nothing is retried.
        """
        obs = get_observability_logger()
        with obs.booking_submit(self.variant.value, request.slot_id, request.requester_contact) as event:
            try:
                body = await self.client.post(
                    self.path,
                    json={"data": request.to_payload()},
                    authenticated=self.variant == BookingVariant.SECURE,
                )
            except ApiError as e:
                logger.error(
                    f"Booking {self.variant.value} submission failed for slot {request.slot_id} "
                    f"({mask_contact(request.requester_contact)}): {e}"
                )
                event.status_code = e.status_code
                raise BookingSubmissionError(str(e), status_code=e.status_code) from e

            result = self._parse_result(body)
            if not result.success:
                logger.error(f"Booking rejected for slot {request.slot_id}: {result.message}")
                event.status_code = result.status_code
                raise BookingSubmissionError(result.message or "Booking rejected")

            # Invalidate only after the backend acknowledged the booking.
            for key in invalidation_keys(request.requester_contact):
                self.cache.invalidate(key)
                event.invalidated_keys += 1

            event.status_code = result.status_code

        logger.info(f"Booked slot {request.slot_id} via {self.variant.value} endpoint")
        return result

    @staticmethod
    def _parse_result(body: Any) -> BookingResult:
        if not isinstance(body, dict):
            return BookingResult(success=True, data=body)
        return BookingResult(
            success=bool(body.get("success", True)),
            message=str(body.get("message") or ""),
            data=body.get("data"),
            status_code=int(body.get("statusCode") or 200),
        )
