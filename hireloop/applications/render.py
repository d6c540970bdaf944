"""Role-checked serializer for Application responses.

Fields are whitelisted per viewer role, so a column added to the model
stays private until it is listed here. ``guard_against_notes_leak`` runs on
every payload handed to a job seeker, however it was assembled.
"""

import logging
from datetime import datetime
from enum import Enum

from hireloop.models import Application, Role
from hireloop.utils.dates import ensure_utc

logger = logging.getLogger("hireloop.applications")

PRIVATE_FIELDS = frozenset({
    "recruiter_notes",
    "internal_notes",
    "admin_notes",
    "admin_actions",
    "archived_by_admin",
    "archived_by_recruiter",
    "notes_enabled",
})

_COMMON_FIELDS = (
    "id",
    "job_id",
    "recruiter_id",
    "candidate_id",
    "status",
    "applied_at",
    "last_activity_at",
    "viewed_at",
    "withdrawn_at",
    "cover_note",
)

FIELDS_BY_ROLE: dict[Role, tuple[str, ...]] = {
    Role.JOB_SEEKER: _COMMON_FIELDS + ("archived_by_job_seeker",),
    Role.RECRUITER: _COMMON_FIELDS + ("published", "archived_by_recruiter"),
    Role.ADMIN: _COMMON_FIELDS + (
        "published",
        "archived_by_job_seeker",
        "archived_by_recruiter",
        "archived_by_admin",
        "recruiter_notes",
        "internal_notes",
        "admin_notes",
    ),
}

_RECRUITER_NOTE_FIELDS = ("recruiter_notes", "internal_notes")


def _serialize(value):
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def render(application: Application, role: Role | str, notes_enabled: bool = True) -> dict:
    """Build the response view of an application for a viewer role."""
    role = Role(role)
    view = {name: _serialize(getattr(application, name)) for name in FIELDS_BY_ROLE[role]}

    if role == Role.RECRUITER:
        view["notes_enabled"] = notes_enabled
        if notes_enabled:
            for name in _RECRUITER_NOTE_FIELDS:
                view[name] = getattr(application, name)
    elif role == Role.ADMIN:
        view["notes_enabled"] = True
        view["admin_actions"] = [action.to_dict() for action in application.admin_actions]

    return guard_against_notes_leak(view, role)


def guard_against_notes_leak(payload, role: Role | str):
    """Strip private fields from anything bound for a job seeker.

    Recurses through nested dicts and lists. Finding a private field here
    means some code path forgot to use render(); it is logged loudly.
    """
    if Role(role) != Role.JOB_SEEKER:
        return payload
    return _strip_private(payload)


def _strip_private(payload):
    if isinstance(payload, dict):
        leaked = PRIVATE_FIELDS.intersection(payload)
        if leaked:
            logger.error("Blocked private fields in job seeker response: %s", sorted(leaked))
        return {k: _strip_private(v) for k, v in payload.items() if k not in PRIVATE_FIELDS}
    if isinstance(payload, list):
        return [_strip_private(item) for item in payload]
    return payload
