"""Test configuration and fixtures."""

from datetime import date, timedelta
from uuid import uuid4

import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from healthtour.core.config import settings
from healthtour.core.database import Base, get_db
from healthtour.models import *  # noqa: F403 - Import all models
from healthtour.models import User
from healthtour.schemas.booking import CreateBookingRequest
from healthtour.schemas.package import CreatePackageRequest
from healthtour.services.package_service import PackageCatalogService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(user_id: str, roles: list[str] | None = None, email: str | None = None) -> str:
    """Sign a bearer token the way the account service would."""
    payload = {"sub": user_id, "roles": roles or []}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def auth_headers(user_id: str, roles: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}


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
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware

    from healthtour.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from healthtour.routers import booking, health, metrics, package, review

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Health Tourism Booking API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Simplified for tests
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "healthtour-booking-api",
            "version": "1.0.0",
            "environment": "test",
            "debug": True,
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "healthtour-booking-api",
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(package.router)
    app.include_router(booking.router)
    app.include_router(review.router)
    app.include_router(metrics.router)

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

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


@pytest.fixture
def make_auth_headers():
    """Build bearer headers for any user id and roles."""
    return auth_headers


@pytest.fixture
def admin_headers():
    """Bearer headers for an administrator."""
    return auth_headers(str(uuid4()), roles=["admin"])


@pytest_asyncio.fixture
async def customer(test_session):
    """A registered customer with a complete profile."""
    user = User(
        first_name="Jonas",
        last_name="Berg",
        email="jonas.berg@example.com",
        phone="+49 151 0000 0002",
        country="Germany",
        date_of_birth=date(1985, 4, 12),
    )
    test_session.add(user)
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def customer_headers(customer):
    """Bearer headers for the sample customer."""
    return auth_headers(str(customer.id))


@pytest.fixture
def sample_package_data():
    """Sample package data for testing."""
    return {
        "title": "Antalya Dental Makeover",
        "description": "Veneers and whitening with a seaside recovery stay",
        "category": "dental-care",
        "facility_name": "Lara Dental Clinic",
        "facility_type": "clinic",
        "location": {"city": "Antalya", "country": "Turkey"},
        "duration_days": 7,
        "duration_nights": 6,
        "base_price": 100000,
        "currency": "EUR",
        "experience_types": ["Treatment-Focused"],
        "services": [
            {"name": "Airport Transfer", "included": True},
            {"name": "Teeth Whitening", "included": False, "additional_cost": 15000},
        ],
        "tags": ["veneers"],
        "max_capacity": 5,
    }


@pytest.fixture
def sample_booking_data():
    """Sample booking data for testing (package_id filled in by the test)."""
    start = date.today() + timedelta(days=30)
    return {
        "personal_info": {
            "first_name": "Mira",
            "last_name": "Stone",
            "email": "mira.stone@example.com",
            "phone": "+44 7700 900000",
        },
        "travel_dates": {
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=6)).isoformat(),
        },
        "travelers": {"adults": 1},
    }


@pytest_asyncio.fixture
async def package_factory(test_session, sample_package_data):
    """Create packages from the sample data with field overrides."""
    service = PackageCatalogService(test_session)

    async def create(**overrides):
        data = {**sample_package_data, **overrides}
        return await service.create_package(CreatePackageRequest(**data))

    return create


@pytest_asyncio.fixture
async def sample_package(package_factory):
    """An active package with capacity 5."""
    return await package_factory()


@pytest.fixture
def booking_request(sample_booking_data):
    """Build a booking request for a package with field overrides."""

    def build(package, **overrides):
        data = {**sample_booking_data, "package_id": str(package.id), **overrides}
        return CreateBookingRequest(**data)

    return build
