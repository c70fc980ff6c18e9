"""Test configuration and fixtures."""

import os

# Settings are read at import time; point them at SQLite before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

from dataclasses import dataclass
from datetime import date, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tripbooking.core.config import settings
from tripbooking.core.database import Base, get_db
from tripbooking.core.dependencies import get_email_dispatcher
from tripbooking.models import *  # noqa: F403 - Import all models
from tripbooking.models import Trip, TripSchedule, User
from tripbooking.schemas.booking import CreateBookingRequest, TravelerIn
from tripbooking.services.email_dispatcher import BookingSummary, DispatchResult, EmailDispatcher

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingEmailDispatcher(EmailDispatcher):
    """Email sink that records every send and answers with a fixed result."""

    def __init__(self, result: DispatchResult | None = None, error: Exception | None = None):
        self.result = result or DispatchResult(success=True, message="Email sent")
        self.error = error
        self.sent: list[tuple[str, BookingSummary]] = []

    async def send(self, recipient_email: str, summary: BookingSummary) -> DispatchResult:
        self.sent.append((recipient_email, summary))
        if self.error is not None:
            raise self.error
        return self.result


@dataclass(frozen=True)
class SeededTrip:
    """Plain ids of seeded rows; safe to use after a session rollback."""

    trip_id: object
    schedule_id: object
    price_per_person: int
    max_seats: int


def make_token(user_id: str, email: str | None = None, roles: list[str] | None = None) -> str:
    payload = {"sub": user_id, "email": email, "name": user_id.title(), "roles": roles or []}
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def auth_headers(user_id: str, email: str | None = None, roles: list[str] | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email, roles)}"}


def traveler(name: str = "Asha Rao", age: int = 29, gender: str = "female",
             phone: str | None = "9876543210", national_id: str | None = "1234-5678-9012") -> TravelerIn:
    return TravelerIn(name=name, age=age, gender=gender, phone=phone, national_id=national_id)


def booking_request(seeded: SeededTrip, people: int = 2, payment_method: str = "cod",
                    with_schedule: bool = True, **overrides) -> CreateBookingRequest:
    travelers = [traveler()] + [
        traveler(name=f"Companion {i}", age=30 + i, gender="male", phone=None, national_id=None)
        for i in range(1, people)
    ]
    data = {
        "trip_id": seeded.trip_id,
        "schedule_id": seeded.schedule_id if with_schedule else None,
        "number_of_people": people,
        "payment_method": payment_method,
        "travelers": travelers,
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


async def seed_trip(session: AsyncSession, slug: str = "hampta-pass", max_seats: int = 10,
                    price_per_person: int = 1250000, start_date: date | None = None,
                    with_schedule: bool = True) -> SeededTrip:
    trip = Trip(
        title="Hampta Pass Trek",
        slug=slug,
        location="Manali",
        price_per_person=price_per_person,
        currency="INR",
        duration_days=5,
        max_seats=max_seats,
        is_active=True,
    )
    session.add(trip)
    await session.flush()

    schedule_id = None
    if with_schedule:
        start = start_date or date.today() + timedelta(days=30)
        schedule = TripSchedule(
            trip_id=trip.id,
            start_date=start,
            end_date=start + timedelta(days=4),
            max_seats=max_seats,
            available_seats=max_seats,
            is_active=True,
        )
        session.add(schedule)
        await session.flush()
        schedule_id = schedule.id

    trip_id = trip.id
    await session.commit()
    return SeededTrip(trip_id=trip_id, schedule_id=schedule_id, price_per_person=price_per_person,
                      max_seats=max_seats)


async def seed_user(session: AsyncSession, user_id: str, email: str | None = None,
                    role: str | None = None, roles: list[str] | None = None) -> str:
    session.add(User(id=user_id, email=email, full_name=user_id.title(), role=role, roles=roles or []))
    await session.commit()
    return user_id


async def load_user(session: AsyncSession, user_id: str) -> User:
    """Fresh user row; earlier rollbacks may have expired the cached one."""
    return await session.get(User, user_id, populate_existing=True)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """
    Session factory over a file-backed database.

    Every session gets its own connection, so concurrent callers really
    contend for the same rows.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
def email_dispatcher():
    return RecordingEmailDispatcher()


@pytest_asyncio.fixture
async def seeded_trip(test_session):
    return await seed_trip(test_session)


@pytest_asyncio.fixture
async def admin_id(test_session):
    return await seed_user(test_session, "admin-1", email="ops@example.com", role="admin", roles=["admin"])


@pytest_asyncio.fixture
async def traveler_id(test_session):
    return await seed_user(test_session, "traveler-1", email="asha@example.com")


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, email_dispatcher):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from tripbooking.core.exceptions import ProblemDetailsException, generic_exception_handler, problem_details_handler
    from tripbooking.routers import (
        activity_router,
        attendance_router,
        booking_router,
        health_router,
        metrics_router,
        notification_router,
        schedule_router,
        trip_router,
        vendor_router,
    )

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Trip Booking API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Simplified for tests
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "trip-booking-api",
            "version": "1.0.0",
            "environment": "test",
            "debug": False,
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "trip-booking-api",
            "checks": {"database": "ok"},
        }

    @app.get("/info")
    async def service_info():
        return {
            "service": "trip-booking-api",
            "version": "1.0.0",
            "description": "Trip booking and seat inventory service",
            "environment": "test",
            "debug": False,
            "features": {"idempotency": True, "seat_feed": True},
        }

    # Register API routers
    app.include_router(health_router)
    app.include_router(trip_router)
    app.include_router(schedule_router)
    app.include_router(booking_router)
    app.include_router(attendance_router)
    app.include_router(notification_router)
    app.include_router(activity_router)
    app.include_router(vendor_router)
    app.include_router(metrics_router)

    # Override database and email dependencies
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_dispatcher] = lambda: email_dispatcher

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
