"""
Reminder aggregator and scheduler tests
"""
import datetime

import pytest

from app.core.clock import FrozenClock
from app.models import Appointment, AppointmentStatus, Doctor, Patient
from app.services.reminder_service import (
    ReminderPriority,
    ReminderScheduler,
    ReminderType,
    apply_session_state,
    build_reminders,
    classify,
    get_reminders,
)

NOW = datetime.datetime(2025, 1, 6, 8, 45)


@pytest.mark.unit
def test_starting_soon_scenario(make_appointment):
    appointment = make_appointment(scheduled_time="09:00")

    reminder = classify(appointment, NOW)

    assert reminder.type == ReminderType.STARTING_SOON
    assert reminder.priority == ReminderPriority.HIGH
    assert reminder.minutes_until == 15
    assert reminder.id == f"starting_soon-{appointment.id}"


@pytest.mark.unit
@pytest.mark.parametrize(
    "scheduled_time,expected_type,expected_priority",
    [
        ("09:15", ReminderType.STARTING_SOON, ReminderPriority.HIGH),
        ("09:16", ReminderType.UPCOMING, ReminderPriority.MEDIUM),
        ("17:30", ReminderType.UPCOMING, ReminderPriority.MEDIUM),
        ("08:30", ReminderType.OVERDUE, ReminderPriority.HIGH),
        ("06:46", ReminderType.OVERDUE, ReminderPriority.HIGH),
    ],
)
def test_scheduled_classification(make_appointment, scheduled_time, expected_type, expected_priority):
    reminder = classify(make_appointment(scheduled_time=scheduled_time), NOW)

    assert reminder.type == expected_type
    assert reminder.priority == expected_priority


@pytest.mark.unit
@pytest.mark.parametrize("scheduled_time", ["08:45", "06:45", "05:00"])
def test_no_reminder_at_boundaries(make_appointment, scheduled_time):
    assert classify(make_appointment(scheduled_time=scheduled_time), NOW) is None


@pytest.mark.unit
def test_tomorrow_is_not_upcoming(make_appointment):
    appointment = make_appointment(scheduled_date=NOW.date() + datetime.timedelta(days=1), scheduled_time="12:00")

    assert classify(appointment, NOW) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "status",
    [AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW],
)
def test_other_statuses_have_no_reminder(make_appointment, status):
    assert classify(make_appointment(scheduled_time="09:00", status=status), NOW) is None


@pytest.mark.unit
@pytest.mark.parametrize("waited,priority", [(15, ReminderPriority.MEDIUM), (16, ReminderPriority.HIGH)])
def test_waiting_priority(make_appointment, waited, priority):
    appointment = make_appointment(
        scheduled_time="08:30",
        status=AppointmentStatus.WAITING,
        arrived_at=NOW - datetime.timedelta(minutes=waited),
    )

    reminder = classify(appointment, NOW)

    assert reminder.type == ReminderType.WAITING
    assert reminder.wait_minutes == waited
    assert reminder.priority == priority


@pytest.mark.unit
def test_names_come_from_related_records(make_appointment):
    appointment = make_appointment(
        scheduled_time="09:00",
        patient=Patient(first_name="Jane", last_name="Doe"),
        doctor=Doctor(first_name="Gregory", last_name="House"),
    )

    reminder = classify(appointment, NOW)

    assert reminder.patient == "Jane Doe"
    assert reminder.doctor == "Dr. Gregory House"
    assert "Jane Doe" in reminder.message


@pytest.mark.unit
def test_priority_sort_is_stable(make_appointment):
    appointments = [
        make_appointment(scheduled_time="12:00"),   # upcoming, medium
        make_appointment(scheduled_time="09:00"),   # starting soon, high
        make_appointment(scheduled_time="14:00"),   # upcoming, medium
        make_appointment(scheduled_time="08:00"),   # overdue, high
        make_appointment(scheduled_time="10:00", status=AppointmentStatus.CANCELLED),
    ]

    reminders = build_reminders(appointments, NOW)

    assert [r.appointment_id for r in reminders] == [
        appointments[1].id,
        appointments[3].id,
        appointments[0].id,
        appointments[2].id,
    ]


@pytest.mark.unit
def test_aggregation_is_deterministic(make_appointment):
    appointments = [
        make_appointment(scheduled_time="09:00"),
        make_appointment(scheduled_time="08:00"),
        make_appointment(status=AppointmentStatus.WAITING, arrived_at=NOW - datetime.timedelta(minutes=20)),
    ]

    first = [r.as_dict() for r in build_reminders(appointments, NOW)]
    second = [r.as_dict() for r in build_reminders(appointments, NOW)]

    assert first == second
    assert repr(first) == repr(second)


@pytest.mark.unit
def test_session_state_marks_read_and_drops_dismissed(make_appointment):
    appointments = [make_appointment(scheduled_time="09:00"), make_appointment(scheduled_time="12:00")]
    reminders = build_reminders(appointments, NOW)
    first, second = reminders

    result = apply_session_state(reminders, read_ids={first.id}, dismissed_ids={second.id})

    assert [r.id for r in result] == [first.id]
    assert result[0].read is True
    assert reminders[0].read is False


async def seed_day(db_session, patient, doctor):
    for number, (time, status) in enumerate(
        [("09:00", AppointmentStatus.SCHEDULED), ("13:00", AppointmentStatus.SCHEDULED), ("10:00", AppointmentStatus.COMPLETED)],
        start=1,
    ):
        db_session.add(
            Appointment(
                appointment_no=f"APT-20250106-{number:04d}",
                patient_id=patient.id,
                doctor_id=doctor.id,
                scheduled_date=NOW.date(),
                scheduled_time=time,
                status=status,
            )
        )
    await db_session.commit()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_reminders_reads_snapshot(session_factory, db_session, patient, doctor):
    await seed_day(db_session, patient, doctor)

    async with session_factory() as db:
        reminders = await get_reminders(db, FrozenClock(NOW))

    assert [(r.type, r.time) for r in reminders] == [
        (ReminderType.STARTING_SOON, "09:00"),
        (ReminderType.UPCOMING, "13:00"),
    ]
    assert reminders[0].patient == "Jane Doe"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_scheduler_recomputes_each_pass(session_factory, db_session, patient, doctor):
    await seed_day(db_session, patient, doctor)
    clock = FrozenClock(NOW)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds=seconds)

    scheduler = ReminderScheduler(session_factory, clock=clock, interval_seconds=60 * 30, sleep=fake_sleep)
    first = await scheduler.tick()
    assert [r.type for r in first] == [ReminderType.STARTING_SOON, ReminderType.UPCOMING]

    # Passes at 08:45 and 09:15; by then the 09:00 booking is overdue
    await scheduler.run(max_passes=2)

    assert scheduler.passes == 3
    assert sleeps == [1800, 1800]
    assert scheduler.last_run_at == datetime.datetime(2025, 1, 6, 9, 15)
    assert [r.type for r in scheduler.latest] == [ReminderType.OVERDUE, ReminderType.UPCOMING]
    assert len(scheduler.latest) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_scheduler_survives_failed_pass():
    calls = []

    def broken_factory():
        calls.append(1)
        raise RuntimeError("database unavailable")

    async def no_sleep(seconds):
        return None

    scheduler = ReminderScheduler(broken_factory, clock=FrozenClock(NOW), interval_seconds=1, sleep=no_sleep)
    await scheduler.run(max_passes=3)

    assert len(calls) == 3
    assert scheduler.latest == []
    assert scheduler.passes == 0
