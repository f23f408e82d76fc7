"""
Shared fixtures: a throwaway SQLite database per test, seeded with one build
project (token ``T1``) and one web-services order (token ``O1``).
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from labs_booking.core.config import settings
from labs_booking.core.db import build_engine, build_session_maker, get_session, get_session_maker, init_db
from labs_booking.main import app
from labs_booking.models import BuildProject, WebServiceOrder

ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def quiet_integrations(monkeypatch):
    """No SMTP, calendar endpoint or Meet room unless a test opts in."""
    monkeypatch.setattr(settings, "smtp_host", "")
    monkeypatch.setattr(settings, "calendar_book_url", "")
    monkeypatch.setattr(settings, "google_meet_room", "")
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    monkeypatch.setattr(settings, "blocked_dates", "")


@pytest.fixture
def engine(tmp_path):
    # NullPool: every asyncio.run / request gets a fresh connection on its own loop
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(init_db(eng))
    yield eng
    asyncio.run(eng.dispose())


async def _seed(session_maker) -> None:
    async with session_maker() as session:
        session.add(
            BuildProject(
                id="proj-1",
                consultation_id="consultation-1",
                business_name="Acme Salon",
                contact_name="Jane Doe",
                email="jane@example.com",
                phone="+254700000000",
                tier_name="Growth",
                showcase_booking_token="T1",
            )
        )
        session.add(
            WebServiceOrder(
                id="order-1",
                email="owner@example.com",
                phone_number="+254711111111",
                showcase_booking_token="O1",
            )
        )
        await session.commit()


@pytest.fixture
def session_maker(engine):
    maker = build_session_maker(engine)
    asyncio.run(_seed(maker))
    return maker


@pytest.fixture
def client(session_maker):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    # Not used as a context manager, so the outbox loop in the lifespan never starts
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}
