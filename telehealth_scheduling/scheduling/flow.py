"""Booking flow state machine composed over the slot store and dispatcher."""

import logging
from enum import Enum
from typing import Any, Optional

from telehealth_scheduling.scheduling.booking import (
    BookingFlowError,
    BookingRequestDispatcher,
    BookingSubmissionError,
    DuplicateSubmissionError,
)
from telehealth_scheduling.scheduling.models import (
    AvailabilitySlot,
    BookingRequest,
    BookingResult,
    DateRange,
    SlotPage,
)
from telehealth_scheduling.scheduling.slot_store import AvailabilitySlotStore

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    """Booking flow states."""

    IDLE = "idle"
    SLOTS_LOADING = "slots_loading"
    SLOTS_LOADED = "slots_loaded"
    SLOT_SELECTED = "slot_selected"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_SUBMITTABLE = (BookingState.SLOT_SELECTED, BookingState.FAILED)


class BookingFlow:
    """Drives one booking from slot loading to submission.

    ``FAILED`` keeps the selected slot so the user can resubmit without
    choosing again. While a submission is in flight, :attr:`can_submit` is
    False and :meth:`submit` raises :class:`DuplicateSubmissionError`.
    """

    def __init__(self, store: AvailabilitySlotStore, dispatcher: BookingRequestDispatcher):
        self.store = store
        self.dispatcher = dispatcher
        self.state = BookingState.IDLE
        self.last_error: Optional[BookingSubmissionError] = None
        self.last_result: Optional[BookingResult] = None

    @property
    def can_submit(self) -> bool:
        return self.state in _SUBMITTABLE and self.store.selected is not None

    @property
    def selected(self) -> Optional[AvailabilitySlot]:
        return self.store.selected

    async def load_slots(
        self,
        practitioner_id: Optional[str],
        date_range: Optional[DateRange] = None,
        extra_filters: Optional[dict[str, Any]] = None,
    ) -> SlotPage:
        if self.state == BookingState.SUBMITTING:
            raise BookingFlowError("Cannot reload slots while a booking is being submitted")
        self.state = BookingState.SLOTS_LOADING
        page = await self.store.fetch_slots(practitioner_id, date_range, extra_filters)
        if self.state == BookingState.SLOTS_LOADING:
            self.state = self._reconcile_selection()
        return page

    def _reconcile_selection(self) -> BookingState:
        """Keep the chosen slot only if the reloaded list still offers it."""
        selected = self.store.selected
        if selected is None:
            return BookingState.SLOTS_LOADED
        current = next((s for s in self.store.slots if s.id == selected.id), None)
        if current is None or not current.is_available:
            logger.info(f"Selected slot {selected.id} is no longer offered; clearing selection")
            self.store.clear_selection()
            return BookingState.SLOTS_LOADED
        self.store.select_slot(current)
        return BookingState.SLOT_SELECTED

    def select(self, slot: AvailabilitySlot) -> None:
        if self.state == BookingState.SUBMITTING:
            raise BookingFlowError("Cannot change slot while a booking is being submitted")
        self.store.select_slot(slot)
        self.state = BookingState.SLOT_SELECTED
        self.last_error = None

    def cancel(self) -> None:
        """Drop the selection and abandon in-flight slot fetches."""
        if self.state == BookingState.SUBMITTING:
            raise BookingFlowError("Cannot cancel while a booking is being submitted")
        self.store.clear_selection()
        self.store.cancel()
        self.state = BookingState.SLOTS_LOADED if self.store.slots else BookingState.IDLE

    def dismiss_error(self) -> None:
        """Return from FAILED to SLOT_SELECTED."""
        if self.state == BookingState.FAILED:
            self.state = BookingState.SLOT_SELECTED

    async def submit(self, requester_contact: str, metadata: Optional[dict[str, Any]] = None) -> BookingResult:
        """Submit the selected slot.

        Raises:
            DuplicateSubmissionError: A submission is already in flight
            BookingFlowError: No slot is selected
            BookingSubmissionError: The backend rejected the booking; the
                flow moves to FAILED with the slot still selected
        """
        if self.state == BookingState.SUBMITTING:
            raise DuplicateSubmissionError("Booking already being submitted")
        slot = self.store.selected
        if slot is None or self.state not in _SUBMITTABLE:
            raise BookingFlowError(f"No slot selected (state={self.state.value})")

        request = BookingRequest(
            slot_id=slot.id,
            requester_contact=requester_contact,
            metadata=metadata or {},
        )

        self.state = BookingState.SUBMITTING
        try:
            result = await self.dispatcher.submit(request)
        except BookingSubmissionError as e:
            self.state = BookingState.FAILED
            self.last_error = e
            logger.warning(f"Booking for slot {slot.id} failed; slot kept for resubmission")
            raise
        except BaseException:
            # Cancellation or an unexpected error: keep the slot and allow resubmission.
            self.state = BookingState.SLOT_SELECTED
            raise

        self.state = BookingState.SUCCEEDED
        self.last_result = result
        self.last_error = None
        self.store.clear_selection()
        return result
