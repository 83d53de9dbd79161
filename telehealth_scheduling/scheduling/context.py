"""Viewer identity and timezone resolution for calendar views."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from telehealth_scheduling.config import get_settings
from telehealth_scheduling.scheduling.models import load_zone


class Role(str, Enum):
    """Actor roles."""

    CLIENT = "client"
    THERAPIST = "therapist"
    ADMIN = "admin"


class Actor(BaseModel):
    """The signed-in user viewing a calendar."""

    id: str
    role: Role
    email: Optional[str] = None
    timezone: Optional[str] = None


def resolve_calendar_owner(actor: Actor, practitioner_id: Optional[str] = None) -> Optional[str]:
    """Return the practitioner whose calendar *actor* should see.

    Therapists always see their own calendar. Admins and clients see the
    requested practitioner, or nothing (None) until one is chosen.
    """
    if actor.role == Role.THERAPIST:
        if practitioner_id and practitioner_id != actor.id:
            raise PermissionError("Therapists can only view their own calendar")
        return actor.id
    return practitioner_id or None


def resolve_timezone(
    preference: Optional[str] = None,
    override: Optional[str] = None,
    default: Optional[str] = None,
) -> str:
    """Pick the viewing timezone: explicit override, then preference, then default.

    Raises ValueError for unknown timezone names.
    """
    timezone = override or preference or default or get_settings().default_timezone
    load_zone(timezone)
    return timezone
