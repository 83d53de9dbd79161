"""Map backend records to ``{value, label}`` options for pickers."""

import logging
from typing import Any, Callable, Optional

from telehealth_scheduling.scheduling.models import AvailabilitySlot, SlotOption, SlotPage, load_zone

logger = logging.getLogger(__name__)

OPTIONS_PAGE_SIZE = 10


def compose_label(*parts: Any, sep: str = ", ") -> str:
    """Join the non-empty parts of a label, skipping missing ones."""
    cleaned = [str(p).strip() for p in parts if p is not None and str(p).strip()]
    return sep.join(cleaned)


def slot_label(slot: AvailabilitySlot, timezone: str = "UTC", fmt: str = "24hr") -> str:
    """``Mon, Feb 05 · 09:00 - 10:00`` in *timezone*."""
    zone = load_zone(timezone)
    start = slot.start_time.astimezone(zone)
    end = slot.end_time.astimezone(zone)
    pattern = "%I:%M %p" if fmt == "12hr" else "%H:%M"
    times = f"{start.strftime(pattern)} - {end.strftime(pattern)}"
    return compose_label(start.strftime("%a, %b %d"), times, sep=" · ")


def slot_to_option(slot: AvailabilitySlot, timezone: str = "UTC") -> SlotOption:
    return SlotOption(value=slot.id, label=slot_label(slot, timezone))


def practitioner_to_option(record: dict[str, Any]) -> SlotOption:
    """Therapist record → option; accepts nested ``user`` or flat ``full_name``."""
    user = record.get("user") or {}
    full_name = record.get("full_name") or compose_label(
        user.get("first_name"), user.get("last_name"), sep=" "
    )
    return SlotOption(value=str(record["id"]), label=full_name or "Unknown Therapist")


def clinic_address_to_option(record: dict[str, Any]) -> SlotOption:
    """Clinic address → ``"Name - street, city, state zip"``, tolerating gaps."""
    locality = compose_label(record.get("state"), record.get("zip_code"), sep=" ")
    address = compose_label(record.get("address"), record.get("city"), locality)
    return SlotOption(value=str(record["id"]), label=compose_label(record.get("name"), address, sep=" - "))


def unwrap_page(body: Any) -> tuple[list[Any], bool]:
    """Extract ``(items, has_more)`` from the backend's envelope.

    Handles ``{"data": {"data": [...], "hasMore": bool}}`` and the flat
    ``{"data": [...]}`` form.
    """
    if not isinstance(body, dict):
        return [], False
    data = body.get("data")
    if isinstance(data, dict):
        items = data.get("data")
        if not isinstance(items, list):
            return [], False
        return items, bool(data.get("hasMore", False))
    if isinstance(data, list):
        return data, bool(body.get("hasMore", False))
    return [], False


async def load_options(
    client: Any,
    path: str,
    transform: Callable[[dict[str, Any]], SlotOption],
    page: Optional[int] = None,
    search: Optional[str] = None,
    extra_params: Optional[dict[str, Any]] = None,
) -> SlotPage:
    """Fetch one page of picker options.

    Failures are logged and returned as an empty page with ``error`` set.
    """
    params: dict[str, Any] = {"page": page or 1, "limit": OPTIONS_PAGE_SIZE}
    if search and search.strip():
        params["search"] = search
    params.update(extra_params or {})

    try:
        body = await client.get(path, params=params)
        items, has_more = unwrap_page(body)
        return SlotPage(data=[transform(item) for item in items], has_more=has_more)
    except Exception as e:
        logger.error(f"Failed to load options from {path}: {e}")
        return SlotPage(data=[], has_more=False, error=str(e) or type(e).__name__)
