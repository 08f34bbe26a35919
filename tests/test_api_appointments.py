"""
Appointment API tests: booking, lifecycle endpoints, slots, queue and reminders
"""
import pytest

API = "/api/v1/appointments"


async def book(client, patient, doctor, time="09:00", date="2025-01-06"):
    return await client.post(
        API,
        json={
            "patient_id": patient.id,
            "doctor_id": doctor.id,
            "scheduled_date": date,
            "scheduled_time": time,
            "reason": "Follow-up",
        },
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_appointment(client, patient, doctor):
    response = await book(client, patient, doctor, time="9:00")

    assert response.status_code == 201
    data = response.json()
    assert data["appointment_no"] == "APT-20250106-0001"
    assert data["scheduled_time"] == "09:00"
    assert data["status"] == "SCHEDULED"
    assert data["patient_name"] == "Jane Doe"
    assert data["doctor_name"] == "Dr. Gregory House"
    assert data["arrived_at"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_double_booking_is_rejected(client, patient, doctor):
    assert (await book(client, patient, doctor)).status_code == 201

    response = await book(client, patient, doctor)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["type"] == "SlotConflict"
    assert error["details"]["field"] == "scheduled_time"
    assert error["details"]["value"] == "09:00"

    listing = await client.get(API, params={"date": "2025-01-06"})
    assert len(listing.json()) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancelled_slot_can_be_rebooked(client, patient, doctor):
    appointment = (await book(client, patient, doctor)).json()

    cancelled = await client.post(f"{API}/{appointment['id']}/cancel", json={"reason": "Rescheduled by phone"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["cancellation_reason"] == "Rescheduled by phone"

    rebooked = await book(client, patient, doctor)
    assert rebooked.status_code == 201
    assert rebooked.json()["appointment_no"] == "APT-20250106-0002"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_full_visit_lifecycle(client, clock, patient, doctor):
    appointment_id = (await book(client, patient, doctor)).json()["id"]

    arrived = await client.post(f"{API}/{appointment_id}/arrive")
    assert arrived.status_code == 200
    assert arrived.json()["status"] == "WAITING"
    assert arrived.json()["arrived_at"] == "2025-01-06T08:45:00"

    clock.advance(minutes=20)
    started = await client.post(f"{API}/{appointment_id}/start")
    assert started.json()["status"] == "IN_PROGRESS"
    assert started.json()["started_at"] == "2025-01-06T09:05:00"

    clock.advance(minutes=25)
    completed = await client.post(f"{API}/{appointment_id}/complete")
    data = completed.json()
    assert data["status"] == "COMPLETED"
    assert data["arrived_at"] <= data["started_at"] <= data["completed_at"]

    transitions = await client.get(f"{API}/{appointment_id}/transitions")
    assert transitions.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_illegal_transition_leaves_appointment_unchanged(client, patient, doctor):
    appointment_id = (await book(client, patient, doctor)).json()["id"]

    response = await client.post(f"{API}/{appointment_id}/complete")

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["type"] == "InvalidTransition"
    assert error["details"] == {
        "kind": "InvalidTransition",
        "field": "status",
        "value": "COMPLETED",
        "current": "SCHEDULED",
    }

    current = await client.get(f"{API}/{appointment_id}")
    assert current.json()["status"] == "SCHEDULED"
    assert current.json()["completed_at"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_patch_dispatches_to_lifecycle(client, patient, doctor):
    appointment_id = (await book(client, patient, doctor)).json()["id"]

    response = await client.patch(f"{API}/{appointment_id}/status", json={"status": "NO_SHOW"})
    assert response.status_code == 200
    assert response.json()["status"] == "NO_SHOW"

    back = await client.patch(f"{API}/{appointment_id}/status", json={"status": "SCHEDULED"})
    assert back.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_transition_options_and_dry_run(client, patient, doctor):
    appointment_id = (await book(client, patient, doctor)).json()["id"]

    options = await client.get(f"{API}/{appointment_id}/transitions")
    assert [o["status"] for o in options.json()] == ["WAITING", "CANCELLED", "NO_SHOW"]

    allowed = await client.post(f"{API}/transitions/validate", json={"current": "WAITING", "target": "IN_PROGRESS"})
    assert allowed.json()["allowed"] is True
    denied = await client.post(f"{API}/transitions/validate", json={"current": "COMPLETED", "target": "WAITING"})
    assert denied.json()["allowed"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_moves_slot_with_conflict_check(client, patient, doctor):
    first = (await book(client, patient, doctor, time="09:00")).json()
    second = (await book(client, patient, doctor, time="10:00")).json()

    clash = await client.put(f"{API}/{second['id']}", json={"scheduled_time": "09:00"})
    assert clash.status_code == 409

    moved = await client.put(f"{API}/{second['id']}", json={"scheduled_time": "10:30", "notes": "Prefers late"})
    assert moved.status_code == 200
    assert moved.json()["scheduled_time"] == "10:30"
    assert moved.json()["notes"] == "Prefers late"

    # Same slot as before is not a conflict with itself
    same = await client.put(f"{API}/{first['id']}", json={"scheduled_time": "09:00", "reason": "Checkup"})
    assert same.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_slot_endpoints(client, patient, doctor):
    await book(client, patient, doctor, time="08:30")

    taken = await client.get(
        f"{API}/slots/check", params={"doctor_id": doctor.id, "date": "2025-01-06", "time": "8:30"}
    )
    assert taken.json()["available"] is False

    slots = await client.get(f"{API}/slots/available", params={"doctor_id": doctor.id, "date": "2025-01-06"})
    by_time = {slot["time"]: slot["available"] for slot in slots.json()}
    assert by_time["08:30"] is False
    assert by_time["09:00"] is True

    bad = await client.get(f"{API}/slots/check", params={"doctor_id": doctor.id, "date": "2025-01-06", "time": "25:00"})
    assert bad.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_time_is_a_validation_error(client, patient, doctor):
    response = await book(client, patient, doctor, time="9h")

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_references(client, patient, doctor):
    missing = await client.get(f"{API}/999")
    assert missing.status_code == 404
    assert missing.json()["error"]["type"] == "NotFoundException"

    response = await client.post(
        API,
        json={"patient_id": patient.id, "doctor_id": 999, "scheduled_date": "2025-01-06", "scheduled_time": "09:00"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_queue_lists_waiting_first(client, patient, doctor):
    early = (await book(client, patient, doctor, time="08:30")).json()
    await book(client, patient, doctor, time="09:00")
    await client.post(f"{API}/{early['id']}/arrive")

    response = await client.get(f"{API}/queue")

    data = response.json()
    assert data["date"] == "2025-01-06"
    assert [e["status"] for e in data["entries"]] == ["WAITING", "SCHEDULED"]
    assert data["entries"][0]["wait_time"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reminders_endpoint(client, patient, doctor):
    booked = (await book(client, patient, doctor, time="09:00")).json()
    await book(client, patient, doctor, time="14:00")

    response = await client.get("/api/v1/reminders")

    data = response.json()
    assert data["total"] == 2
    assert data["unread"] == 2
    first = data["reminders"][0]
    assert first["id"] == f"starting_soon-{booked['id']}"
    assert first["priority"] == "high"
    assert first["minutes_until"] == 15

    latest = await client.get("/api/v1/reminders/latest")
    assert latest.json()["total"] == 0

    # Without a Redis backed session store nothing is persisted
    read = await client.post(f"/api/v1/reminders/{first['id']}/read", params={"session_id": "desk-1"})
    assert read.json() == {"reminder_id": first["id"], "stored": False}
