"""
Pytest configuration and fixtures
"""
import datetime
import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from app.core.clock import FrozenClock, get_clock
from app.models import Appointment, AppointmentStatus, Doctor, Patient, Service, ServiceCategory


# Test database URL (use in-memory SQLite for testing)
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///:memory:"
)

# Monday morning, a quarter to nine
NOW = datetime.datetime(2025, 1, 6, 8, 45)


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh database per test; yields the session factory bound to it
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False} if "sqlite" in TEST_DATABASE_URL else {},
        poolclass=StaticPool if "sqlite" in TEST_DATABASE_URL else None,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against the app with the test database and frozen clock
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def patient(db_session: AsyncSession) -> Patient:
    """
    Create a test patient
    """
    patient = Patient(patient_no="TP-20250101-0001", first_name="Jane", last_name="Doe", phone="555-0100")
    db_session.add(patient)
    await db_session.commit()
    await db_session.refresh(patient)
    return patient


@pytest.fixture
async def doctor(db_session: AsyncSession) -> Doctor:
    """
    Create a test doctor
    """
    doctor = Doctor(
        employee_id="DOC-0001",
        first_name="Gregory",
        last_name="House",
        specialization="Diagnostics",
        consultation_fee=Decimal("50.00"),
        consultation_minutes=30,
        is_active=True,
    )
    db_session.add(doctor)
    await db_session.commit()
    await db_session.refresh(doctor)
    return doctor


@pytest.fixture
async def service(db_session: AsyncSession) -> Service:
    service = Service(
        code="SRV-0001",
        name="General Consultation",
        category=ServiceCategory.CONSULTATION,
        unit_price=Decimal("50.00"),
        is_active=True,
    )
    db_session.add(service)
    await db_session.commit()
    await db_session.refresh(service)
    return service


@pytest.fixture
def make_appointment():
    """
    Build an unsaved appointment for pure (no database) tests
    """
    counter = {"id": 0}

    def _make(
        scheduled_time: str = "09:00",
        scheduled_date: datetime.date = NOW.date(),
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        doctor_id: int = 1,
        **fields,
    ) -> Appointment:
        counter["id"] += 1
        fields.setdefault("id", counter["id"])
        fields.setdefault("appointment_no", f"APT-20250106-{counter['id']:04d}")
        fields.setdefault("patient_id", 1)
        return Appointment(
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            status=status,
            doctor_id=doctor_id,
            **fields,
        )

    return _make
