"""
Appointment state machine tests
"""
import datetime

import pytest

from app.core.error_handling import InvalidTransition
from app.models import AppointmentStatus as S
from app.services import appointment_workflow as workflow

T0 = datetime.datetime(2025, 1, 6, 8, 50)

LEGAL = {
    (S.SCHEDULED, S.WAITING),
    (S.SCHEDULED, S.CANCELLED),
    (S.SCHEDULED, S.NO_SHOW),
    (S.WAITING, S.IN_PROGRESS),
    (S.WAITING, S.CANCELLED),
    (S.WAITING, S.NO_SHOW),
    (S.IN_PROGRESS, S.COMPLETED),
    (S.IN_PROGRESS, S.NO_SHOW),
}


def snapshot(appointment):
    return (
        appointment.status,
        appointment.arrived_at,
        appointment.started_at,
        appointment.completed_at,
        appointment.cancellation_reason,
    )


@pytest.mark.unit
@pytest.mark.parametrize("current", list(S))
@pytest.mark.parametrize("target", list(S))
def test_transition_table(current, target):
    assert workflow.can_transition(current, target) == ((current, target) in LEGAL)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [(c, t) for c in S for t in S if (c, t) not in LEGAL],
)
def test_illegal_transition_leaves_appointment_unchanged(make_appointment, current, target):
    appointment = make_appointment(status=current, arrived_at=T0 if current != S.SCHEDULED else None)
    before = snapshot(appointment)

    with pytest.raises(InvalidTransition) as exc_info:
        workflow.apply_status(appointment, target, now=T0 + datetime.timedelta(minutes=5), reason="x")

    assert exc_info.value.field == "status"
    assert exc_info.value.details["current"] == current.value
    assert snapshot(appointment) == before


@pytest.mark.unit
def test_full_visit_stamps_ordered_timestamps(make_appointment):
    appointment = make_appointment()

    workflow.mark_arrived(appointment, now=T0)
    workflow.start_consultation(appointment, now=T0 + datetime.timedelta(minutes=12))
    workflow.complete_consultation(appointment, now=T0 + datetime.timedelta(minutes=40))

    assert appointment.status == S.COMPLETED
    assert appointment.arrived_at is not None
    assert appointment.started_at is not None
    assert appointment.completed_at is not None
    assert appointment.arrived_at <= appointment.started_at <= appointment.completed_at


@pytest.mark.unit
def test_start_before_arrival_is_rejected(make_appointment):
    appointment = make_appointment()
    workflow.mark_arrived(appointment, now=T0)

    with pytest.raises(InvalidTransition) as exc_info:
        workflow.start_consultation(appointment, now=T0 - datetime.timedelta(minutes=1))

    assert exc_info.value.field == "started_at"
    assert appointment.status == S.WAITING
    assert appointment.started_at is None


@pytest.mark.unit
def test_cancel_keeps_prior_timestamps(make_appointment):
    appointment = make_appointment()
    workflow.mark_arrived(appointment, now=T0)

    workflow.cancel(appointment, reason="Patient left", now=T0 + datetime.timedelta(minutes=3))

    assert appointment.status == S.CANCELLED
    assert appointment.arrived_at == T0
    assert appointment.cancellation_reason == "Patient left"


@pytest.mark.unit
def test_cancel_during_consultation_is_rejected(make_appointment):
    appointment = make_appointment(status=S.IN_PROGRESS, arrived_at=T0, started_at=T0)

    with pytest.raises(InvalidTransition):
        workflow.cancel(appointment, now=T0)

    assert appointment.status == S.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.parametrize("current", [S.SCHEDULED, S.WAITING, S.IN_PROGRESS])
def test_no_show_from_any_open_state(make_appointment, current):
    appointment = make_appointment(status=current)

    workflow.mark_no_show(appointment, now=T0)

    assert appointment.status == S.NO_SHOW


@pytest.mark.unit
def test_allowed_actions_follow_table():
    for status, actions in workflow.ACTIONS.items():
        assert {target for target, _ in actions} == set(workflow.TRANSITIONS[status])
    assert workflow.allowed_transitions(S.COMPLETED) == []
    assert workflow.allowed_transitions(S.SCHEDULED)[0] == (S.WAITING, "Check In")


@pytest.mark.unit
def test_tables_cover_every_status():
    assert set(workflow.TRANSITIONS) == set(S)
    assert set(workflow.ACTIONS) == set(S)
    assert workflow.TERMINAL_STATUSES == {S.COMPLETED, S.CANCELLED, S.NO_SHOW}
