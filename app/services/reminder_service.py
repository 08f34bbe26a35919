"""
Reminder Aggregator

Derives the prioritized notification list (starting soon, upcoming,
overdue, waiting) from an appointment snapshot and the current instant.
Every pass recomputes the whole list; nothing accumulates between passes.
"""
import asyncio
import datetime
import enum
import logging
import math
from dataclasses import dataclass, asdict, replace
from typing import Awaitable, Callable, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, system_clock
from app.models import Appointment, AppointmentStatus
from config import settings

logger = logging.getLogger(__name__)


class ReminderType(str, enum.Enum):
    STARTING_SOON = "starting_soon"
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    WAITING = "waiting"


class ReminderPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {
    ReminderPriority.HIGH: 0,
    ReminderPriority.MEDIUM: 1,
    ReminderPriority.LOW: 2,
}

TITLES = {
    ReminderType.STARTING_SOON: "Appointment Starting Soon",
    ReminderType.UPCOMING: "Upcoming Appointment Today",
    ReminderType.OVERDUE: "Overdue Appointment",
    ReminderType.WAITING: "Patient Waiting",
}


@dataclass(frozen=True)
class Reminder:
    id: str
    type: ReminderType
    priority: ReminderPriority
    appointment_id: int
    title: str
    message: str
    time: str
    patient: str
    doctor: str
    generated_at: datetime.datetime
    minutes_until: Optional[int] = None
    wait_minutes: Optional[int] = None
    read: bool = False

    def as_dict(self):
        return asdict(self)


def minutes_between(later: datetime.datetime, earlier: datetime.datetime) -> int:
    """Whole minutes from ``earlier`` to ``later``, truncated toward zero"""
    return math.trunc((later - earlier).total_seconds() / 60)


def reminder_id(reminder_type: ReminderType, appointment_id: int) -> str:
    return f"{reminder_type.value}-{appointment_id}"


def classify(
    appointment: Appointment,
    now: datetime.datetime,
    starting_soon_minutes: Optional[int] = None,
    overdue_window_minutes: Optional[int] = None,
    waiting_alert_minutes: Optional[int] = None,
) -> Optional[Reminder]:
    """At most one reminder per appointment; first matching rule wins"""
    soon = settings.STARTING_SOON_MINUTES if starting_soon_minutes is None else starting_soon_minutes
    overdue_window = settings.OVERDUE_WINDOW_MINUTES if overdue_window_minutes is None else overdue_window_minutes
    waiting_alert = settings.WAITING_ALERT_MINUTES if waiting_alert_minutes is None else waiting_alert_minutes

    patient = appointment.patient_name or "Unknown Patient"
    doctor = appointment.doctor_name or "Unknown Doctor"
    time = appointment.scheduled_time or ""

    def build(reminder_type, priority, message, **extra):
        return Reminder(
            id=reminder_id(reminder_type, appointment.id),
            type=reminder_type,
            priority=priority,
            appointment_id=appointment.id,
            title=TITLES[reminder_type],
            message=message,
            time=time,
            patient=patient,
            doctor=doctor,
            generated_at=now,
            **extra,
        )

    if appointment.status == AppointmentStatus.WAITING:
        wait = minutes_between(now, appointment.arrived_at) if appointment.arrived_at else 0
        priority = ReminderPriority.HIGH if wait > waiting_alert else ReminderPriority.MEDIUM
        return build(
            ReminderType.WAITING,
            priority,
            f"{patient} has been waiting for {wait} minutes",
            wait_minutes=wait,
        )

    if appointment.status != AppointmentStatus.SCHEDULED:
        return None

    scheduled_at = appointment.scheduled_at
    minutes_until = minutes_between(scheduled_at, now)

    if 0 < minutes_until <= soon:
        return build(
            ReminderType.STARTING_SOON,
            ReminderPriority.HIGH,
            f"{patient}'s appointment starts in {minutes_until} minutes",
            minutes_until=minutes_until,
        )
    if minutes_until > soon and scheduled_at.date() == now.date():
        return build(
            ReminderType.UPCOMING,
            ReminderPriority.MEDIUM,
            f"{patient} has an appointment at {time}",
            minutes_until=minutes_until,
        )
    if -overdue_window < minutes_until < 0:
        return build(
            ReminderType.OVERDUE,
            ReminderPriority.HIGH,
            f"{patient}'s appointment was scheduled {abs(minutes_until)} minutes ago",
            minutes_until=minutes_until,
        )
    return None


def build_reminders(appointments: Iterable[Appointment], now: datetime.datetime) -> List[Reminder]:
    """
    Prioritized reminder list for a snapshot at ``now``.

    Deterministic: the same snapshot and instant give the same list. The
    sort is stable, so equal priorities keep snapshot order.
    """
    reminders = []
    for appointment in appointments:
        reminder = classify(appointment, now)
        if reminder is not None:
            reminders.append(reminder)
    return sorted(reminders, key=lambda r: PRIORITY_ORDER[r.priority])


def apply_session_state(
    reminders: Iterable[Reminder],
    read_ids: Set[str] = frozenset(),
    dismissed_ids: Set[str] = frozenset(),
) -> List[Reminder]:
    """Drop dismissed reminders and flag read ones, matched by reminder id"""
    return [
        replace(reminder, read=reminder.id in read_ids)
        for reminder in reminders
        if reminder.id not in dismissed_ids
    ]


async def load_snapshot(db: AsyncSession) -> List[Appointment]:
    """All appointments in discovery order (date, time, id)"""
    query = select(Appointment).order_by(
        Appointment.scheduled_date,
        Appointment.scheduled_time,
        Appointment.id,
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_reminders(db: AsyncSession, clock: Clock = system_clock) -> List[Reminder]:
    appointments = await load_snapshot(db)
    return build_reminders(appointments, clock.now())


class ReminderScheduler:
    """
    Re-runs the aggregator on a fixed cadence.

    ``clock`` and ``sleep`` are injectable so tests can call ``tick()``
    directly or drive ``run()`` without waiting in real time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Clock = system_clock,
        interval_seconds: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds or settings.REMINDER_INTERVAL_SECONDS
        self.sleep = sleep
        self.latest: List[Reminder] = []
        self.last_run_at: Optional[datetime.datetime] = None
        self.passes = 0
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> List[Reminder]:
        """One aggregation pass over a fresh snapshot"""
        async with self.session_factory() as db:
            appointments = await load_snapshot(db)
        now = self.clock.now()
        self.latest = build_reminders(appointments, now)
        self.last_run_at = now
        self.passes += 1

        high = sum(1 for r in self.latest if r.priority == ReminderPriority.HIGH)
        logger.info(f"Reminder pass at {now.isoformat()}: {len(self.latest)} reminders ({high} high priority)")
        return self.latest

    async def run(self, max_passes: Optional[int] = None):
        passes = 0
        while max_passes is None or passes < max_passes:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A failed pass keeps the previous list; the next tick retries
                logger.error(f"Reminder pass failed: {e}", exc_info=True)
            passes += 1
            await self.sleep(self.interval_seconds)

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
            logger.info(f"Reminder scheduler started (every {self.interval_seconds}s)")
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Reminder scheduler stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
