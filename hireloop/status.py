"""Application status lifecycle — the single transition table.

Workflow:
    applied -> viewed (automatic on first recruiter view)
    viewed -> contacted -> interviewing -> offered -> hired
    applied/viewed/contacted/interviewing/offered -> rejected
    applied/viewed -> withdrawn (candidate only)

``hired``, ``rejected``, ``withdrawn`` and the legacy ``accepted`` are
terminal. The same table backs server-side enforcement and the pre-flight
checks exposed to clients, so the two can never drift apart.
"""

from enum import Enum


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    VIEWED = "viewed"
    CONTACTED = "contacted"
    INTERVIEWING = "interviewing"
    OFFERED = "offered"
    HIRED = "hired"
    ACCEPTED = "accepted"  # legacy
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


S = ApplicationStatus

TERMINAL_STATES: frozenset[ApplicationStatus] = frozenset({S.HIRED, S.REJECTED, S.WITHDRAWN, S.ACCEPTED})

ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    S.APPLIED: frozenset({S.VIEWED, S.WITHDRAWN, S.REJECTED}),
    S.VIEWED: frozenset({S.CONTACTED, S.REJECTED, S.WITHDRAWN}),
    S.CONTACTED: frozenset({S.INTERVIEWING, S.REJECTED}),
    S.INTERVIEWING: frozenset({S.OFFERED, S.REJECTED}),
    S.OFFERED: frozenset({S.HIRED, S.REJECTED}),
    S.HIRED: frozenset(),
    S.ACCEPTED: frozenset(),
    S.REJECTED: frozenset(),
    S.WITHDRAWN: frozenset(),
}

# Progress ladder used by the contact flow so it never downgrades.
# Terminal outcomes off the ladder sit below everything; callers check
# is_terminal() before comparing.
STATUS_PRIORITY: dict[ApplicationStatus, int] = {
    S.APPLIED: 0,
    S.VIEWED: 1,
    S.CONTACTED: 2,
    S.INTERVIEWING: 3,
    S.OFFERED: 4,
    S.HIRED: 5,
    S.ACCEPTED: 5,
    S.REJECTED: -1,
    S.WITHDRAWN: -1,
}

# Statuses that send the candidate a status-changed email
NOTIFY_STATUSES: frozenset[ApplicationStatus] = frozenset({S.CONTACTED, S.INTERVIEWING, S.OFFERED, S.REJECTED})

# Adding a status without updating every table above fails at import time
for _table in (ALLOWED_TRANSITIONS, STATUS_PRIORITY):
    _missing = set(ApplicationStatus) - set(_table)
    if _missing:
        raise RuntimeError(f"Status table incomplete, missing: {sorted(m.value for m in _missing)}")
for _status in TERMINAL_STATES:
    if ALLOWED_TRANSITIONS[_status]:
        raise RuntimeError(f"Terminal status {_status.value} must not have outgoing transitions")


def parse_status(value: "str | ApplicationStatus") -> ApplicationStatus:
    """Coerce a raw string into ApplicationStatus. Raises ValueError for unknown values."""
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in ApplicationStatus)
        raise ValueError(f'Invalid status "{value}". Must be one of: {valid}') from None


def is_terminal(status: ApplicationStatus) -> bool:
    return parse_status(status) in TERMINAL_STATES


def allowed_next(status: ApplicationStatus) -> frozenset[ApplicationStatus]:
    return ALLOWED_TRANSITIONS[parse_status(status)]


def status_priority(status: ApplicationStatus) -> int:
    return STATUS_PRIORITY[parse_status(status)]


def _terminal_list() -> str:
    return ", ".join(s.value for s in ApplicationStatus if s in TERMINAL_STATES)


def validate_transition(from_status: ApplicationStatus, to_status: ApplicationStatus) -> str | None:
    """Return an error message if the transition is illegal, else None.

    A same-status write on a non-terminal status is an idempotent no-op.
    On a terminal status it is rejected exactly like a real change.
    """
    current = parse_status(from_status)
    target = parse_status(to_status)

    if current in TERMINAL_STATES:
        return (
            f'Cannot change status from "{current.value}". Applications in terminal states '
            f"({_terminal_list()}) cannot be modified."
        )

    if current == target:
        return None

    allowed = ALLOWED_TRANSITIONS[current]
    if target not in allowed:
        allowed_list = ", ".join(f'"{s.value}"' for s in ApplicationStatus if s in allowed)
        return (
            f'Invalid status transition from "{current.value}" to "{target.value}". '
            f'Allowed transitions from "{current.value}" are: {allowed_list}.'
        )

    return None


def is_transition_allowed(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    return validate_transition(from_status, to_status) is None


def describe_transitions(status: ApplicationStatus) -> str:
    """Human-readable summary of where an application can go next."""
    current = parse_status(status)
    if current in TERMINAL_STATES:
        return f'Status "{current.value}" is a terminal state and cannot be changed.'

    allowed = ALLOWED_TRANSITIONS[current]
    targets = ", ".join(f'"{s.value}"' for s in ApplicationStatus if s in allowed)
    return f'From "{current.value}", you can transition to: {targets}.'
