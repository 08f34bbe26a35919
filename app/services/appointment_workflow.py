"""
Appointment Status State Machine

SCHEDULED -> WAITING -> IN_PROGRESS -> COMPLETED, plus CANCELLED (from
SCHEDULED or WAITING) and NO_SHOW (from any non-terminal state).
COMPLETED, CANCELLED and NO_SHOW are terminal.
"""
import datetime
import logging
from typing import Dict, FrozenSet, Optional, Tuple

from app.core.error_handling import InvalidTransition
from app.models import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.WAITING, S.CANCELLED, S.NO_SHOW}),
    S.WAITING: frozenset({S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Lifecycle timestamp stamped by the transition into each status
TIMESTAMP_FIELDS: Dict[AppointmentStatus, str] = {
    S.WAITING: "arrived_at",
    S.IN_PROGRESS: "started_at",
    S.COMPLETED: "completed_at",
}

# UI action labels per status, in display order
ACTIONS: Dict[AppointmentStatus, Tuple[Tuple[AppointmentStatus, str], ...]] = {
    S.SCHEDULED: ((S.WAITING, "Check In"), (S.CANCELLED, "Cancel"), (S.NO_SHOW, "No Show")),
    S.WAITING: ((S.IN_PROGRESS, "Start"), (S.CANCELLED, "Cancel"), (S.NO_SHOW, "No Show")),
    S.IN_PROGRESS: ((S.COMPLETED, "Complete"), (S.NO_SHOW, "No Show")),
    S.COMPLETED: (),
    S.CANCELLED: (),
    S.NO_SHOW: (),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def allowed_transitions(current: AppointmentStatus):
    """[(target, label), ...] the UI may offer for an appointment in ``current``"""
    return list(ACTIONS[AppointmentStatus(current)])


def validate_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    """Pure pre-commit check; raises InvalidTransition when illegal"""
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move appointment from {current.value} to {target.value}",
            field="status",
            value=target,
            current=current,
        )


def _transition(
    appointment: Appointment,
    target: AppointmentStatus,
    now: Optional[datetime.datetime] = None,
    **changes,
) -> Appointment:
    current = appointment.status or S.SCHEDULED
    validate_transition(current, target)

    now = now or datetime.datetime.now()
    timestamp_field = TIMESTAMP_FIELDS.get(target)
    if timestamp_field:
        _check_order(appointment, timestamp_field, now)
        changes[timestamp_field] = now
    changes["status"] = target

    # Nothing is assigned until every check has passed
    for name, value in changes.items():
        setattr(appointment, name, value)

    logger.info(f"Appointment {appointment.id} {current.value} -> {target.value}")
    return appointment


def _check_order(appointment: Appointment, field: str, now: datetime.datetime) -> None:
    """arrived_at <= started_at <= completed_at"""
    previous = {"started_at": "arrived_at", "completed_at": "started_at"}.get(field)
    earlier = getattr(appointment, previous) if previous else None
    if earlier is not None and now < earlier:
        raise InvalidTransition(
            f"{field} cannot precede {previous}",
            field=field,
            value=now,
            **{previous: earlier},
        )


def mark_arrived(appointment: Appointment, now: Optional[datetime.datetime] = None) -> Appointment:
    """SCHEDULED -> WAITING, stamps arrived_at"""
    return _transition(appointment, S.WAITING, now)


def start_consultation(appointment: Appointment, now: Optional[datetime.datetime] = None) -> Appointment:
    """WAITING -> IN_PROGRESS, stamps started_at"""
    return _transition(appointment, S.IN_PROGRESS, now)


def complete_consultation(appointment: Appointment, now: Optional[datetime.datetime] = None) -> Appointment:
    """IN_PROGRESS -> COMPLETED, stamps completed_at"""
    return _transition(appointment, S.COMPLETED, now)


def cancel(
    appointment: Appointment,
    reason: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> Appointment:
    """SCHEDULED|WAITING -> CANCELLED; earlier timestamps are kept"""
    changes = {"cancellation_reason": reason} if reason else {}
    return _transition(appointment, S.CANCELLED, now, **changes)


def mark_no_show(appointment: Appointment, now: Optional[datetime.datetime] = None) -> Appointment:
    return _transition(appointment, S.NO_SHOW, now)


OPERATIONS = {
    S.WAITING: mark_arrived,
    S.IN_PROGRESS: start_consultation,
    S.COMPLETED: complete_consultation,
    S.CANCELLED: cancel,
    S.NO_SHOW: mark_no_show,
}


def apply_status(
    appointment: Appointment,
    target: AppointmentStatus,
    now: Optional[datetime.datetime] = None,
    reason: Optional[str] = None,
) -> Appointment:
    """Dispatch a requested target status to its operation"""
    target = AppointmentStatus(target)
    operation = OPERATIONS.get(target)
    if operation is None:
        # Nothing transitions back into SCHEDULED
        validate_transition(appointment.status or S.SCHEDULED, target)
    if target == S.CANCELLED:
        return cancel(appointment, reason=reason, now=now)
    return operation(appointment, now=now)
