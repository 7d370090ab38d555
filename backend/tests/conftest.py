"""
Test fixtures - in-memory SQLite database, a small record store + authenticated HTTP client
"""
import random
from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from backend.database import Base, get_db
from backend.main import app
from backend.api.auth import get_password_hash, create_access_token
from backend.models.user import User
from backend.services.record_store import RecordStore
from backend.services.forecast_service import ForecastService, get_forecast_service
from backend.services.planner_service import PlannerService, get_planner_service
from backend.services.tracker_service import TrackerService, get_tracker_service
from backend.services.impact_service import ImpactService, get_impact_service
from backend.services.dashboard_service import DashboardService, get_dashboard_service
from backend.tests import factories

TODAY = date(2024, 3, 15)


@pytest.fixture()
def record_store():
    """Ten days of history for two dining halls and a three-dish catalog"""
    dates = factories.daily_dates("2024-03-01", 10)
    chicken_waste = [8, 12, 9, 11, 10, 14, 7, 9, 12, 10]

    production = [
        factories.production("Grilled Chicken", d, w, category="Protein")
        for d, w in zip(dates, chicken_waste)
    ]
    production += [
        factories.production("Veggie Pasta", d, 30.0, category="Pasta")
        for d in dates[:3]
    ]
    pickups = [
        factories.pickup("Main Dining Hall", d, 40.0 + i * 2)
        for i, d in enumerate(dates[:6])
    ]
    pickups += [
        factories.pickup("North Cafe", d, 25.0, destination_partner="Shelter One", pickup_time="11:15")
        for d in dates[:4]
    ]

    return RecordStore(
        production=production,
        pickups=pickups,
        external=[factories.external(d) for d in dates],
        menu=[
            factories.menu_item("Grilled Chicken", "lunch", popularity_score=9.0, allergens=""),
            factories.menu_item("Veggie Pasta", "lunch", popularity_score=6.0, allergens="gluten"),
            factories.menu_item("Beef Stew", "dinner", popularity_score=7.0, cost_per_serving=3.0),
        ],
        impact=[factories.impact(d) for d in factories.daily_dates("2024-02-15", 30)],
    )


@pytest.fixture()
def services(record_store):
    forecast = ForecastService(record_store)
    planner = PlannerService(record_store)
    tracker = TrackerService(record_store)
    impact = ImpactService(record_store, rng=random.Random(7))
    dashboard = DashboardService(record_store, forecast, planner, tracker, impact, today=lambda: TODAY)
    return {
        "forecast": forecast,
        "planner": planner,
        "tracker": tracker,
        "impact": impact,
        "dashboard": dashboard,
    }


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: one admin user"""
    user = User(
        email="test@hp.com",
        full_name="Test User",
        hashed_password=get_password_hash("testpass123"),
        is_admin=True,
    )

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return {"user": user}


def _override_dependencies(db_session, services):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_forecast_service] = lambda: services["forecast"]
    app.dependency_overrides[get_planner_service] = lambda: services["planner"]
    app.dependency_overrides[get_tracker_service] = lambda: services["tracker"]
    app.dependency_overrides[get_impact_service] = lambda: services["impact"]
    app.dependency_overrides[get_dashboard_service] = lambda: services["dashboard"]


@pytest_asyncio.fixture()
async def client(db_session, seed_data, services):
    """Authenticated httpx AsyncClient bound to the FastAPI app"""
    _override_dependencies(db_session, services)

    token = create_access_token(data={"sub": seed_data["user"].email})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session, services):
    """Unauthenticated httpx AsyncClient"""
    _override_dependencies(db_session, services)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
