"""
Slot conflict resolver tests
"""
import datetime

import pytest

from app.core.error_handling import SlotConflict
from app.models import Appointment, AppointmentStatus
from app.services.slot_service import (
    available_slots,
    check_slot_availability,
    ensure_slot_available,
    is_slot_available,
    normalize_time,
    slot_grid,
)

DAY = datetime.date(2025, 1, 6)


@pytest.mark.unit
def test_second_booking_for_same_slot_is_unavailable(make_appointment):
    first = make_appointment(scheduled_time="09:00", doctor_id=7)

    assert is_slot_available([], 7, DAY, "09:00") is True
    assert is_slot_available([first], 7, DAY, "09:00") is False


@pytest.mark.unit
def test_other_doctor_date_or_time_does_not_conflict(make_appointment):
    booked = [make_appointment(scheduled_time="09:00", doctor_id=7)]

    assert is_slot_available(booked, 8, DAY, "09:00")
    assert is_slot_available(booked, 7, DAY + datetime.timedelta(days=1), "09:00")
    assert is_slot_available(booked, 7, DAY, "09:30")


@pytest.mark.unit
def test_overlapping_duration_is_not_detected(make_appointment):
    long_visit = make_appointment(scheduled_time="09:00", doctor_id=7, duration=60)

    assert is_slot_available([long_visit], 7, DAY, "09:30")


@pytest.mark.unit
@pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW])
def test_released_statuses_free_the_slot(make_appointment, status):
    released = make_appointment(scheduled_time="09:00", doctor_id=7, status=status)

    assert is_slot_available([released], 7, DAY, "09:00")


@pytest.mark.unit
def test_excluded_appointment_does_not_conflict_with_itself(make_appointment):
    booked = make_appointment(scheduled_time="09:00", doctor_id=7)

    assert is_slot_available([booked], 7, DAY, "09:00", exclude_appointment_id=booked.id)


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [("9:00", "09:00"), ("09:05:00", "09:05"), (datetime.time(14, 30), "14:30"), (" 8:5 ", "08:05")],
)
def test_normalize_time(value, expected):
    assert normalize_time(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", ["", "9", "25:00", "10:60", "ab:cd"])
def test_normalize_time_rejects_garbage(value):
    with pytest.raises(ValueError):
        normalize_time(value)


@pytest.mark.unit
def test_slot_grid_is_inclusive():
    grid = slot_grid("08:00", "10:00", 30)

    assert grid == ["08:00", "08:30", "09:00", "09:30", "10:00"]
    assert len(slot_grid("08:00", "18:00", 30)) == 21


@pytest.mark.unit
def test_available_slots_flags_taken_times(make_appointment):
    booked = [make_appointment(scheduled_time="08:30", doctor_id=7)]

    slots = available_slots(booked, 7, DAY, times=slot_grid("08:00", "09:00", 30))

    assert slots == [
        {"time": "08:00", "available": True},
        {"time": "08:30", "available": False},
        {"time": "09:00", "available": True},
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_database_check_and_conflict_error(db_session, patient, doctor):
    booked = Appointment(
        appointment_no="APT-20250106-0001",
        patient_id=patient.id,
        doctor_id=doctor.id,
        scheduled_date=DAY,
        scheduled_time="09:00",
        status=AppointmentStatus.SCHEDULED,
    )
    db_session.add(booked)
    await db_session.commit()

    assert await check_slot_availability(db_session, doctor.id, DAY, "9:00") is False
    assert await check_slot_availability(db_session, doctor.id, DAY, "09:30") is True

    with pytest.raises(SlotConflict) as exc_info:
        await ensure_slot_available(db_session, doctor.id, DAY, "09:00")

    details = exc_info.value.details
    assert details["field"] == "scheduled_time"
    assert details["value"] == "09:00"
    assert details["conflicting_appointment_id"] == booked.id
