import os

os.environ.setdefault("FM_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FM_AUTH_MODE", "dev")
os.environ.setdefault("FM_ENABLE_GMAIL", "false")
os.environ.setdefault("FM_ALLOW_DEMO_MODE", "true")
os.environ.setdefault("FM_ADMIN_EMAIL", "admin@example.com")

from datetime import date, time

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import get_session
from app.main import create_app
from app.models.fair import FairEvent, FairSlot, FairSlotAllocation
from app.models.profile import UserProfile
from app.services.slot_generation import create_slots_for_event


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
async def client(session_factory):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def identity(email: str, role: str, company: str | None = None) -> dict[str, str]:
    headers = {"x-user-email": email, "x-user-roles": role}
    if company:
        headers["x-user-company"] = company
    return headers


ADMIN = identity("admin@example.com", "admin")
RECRUITER = identity("hr@acme.example.com", "recruiter", "Acme")
OTHER_RECRUITER = identity("hr@globex.example.com", "recruiter", "Globex")
CANDIDATE = identity("ana@example.com", "candidate")
OTHER_CANDIDATE = identity("luis@example.com", "candidate")
DEMO = {"x-demo-mode": "true"}


@pytest.fixture()
async def fair(db_session):
    """One event on 2030-05-20 from 09:00 to 11:00 in 30-minute slots, with Acme holding the first two."""
    event = FairEvent(
        title="Spring Fair",
        event_date=date(2030, 5, 20),
        start_time=time(9, 0),
        end_time=time(11, 0),
        slot_duration_minutes=30,
    )
    db_session.add(event)
    await db_session.flush()
    slots = await create_slots_for_event(db_session, event)
    allocations = [
        FairSlotAllocation(slot_id=slots[0].slot_id, company_name="Acme", interviewer_name="Marta"),
        FairSlotAllocation(slot_id=slots[1].slot_id, company_name="Acme", interviewer_name="Marta"),
        FairSlotAllocation(slot_id=slots[0].slot_id, company_name="Globex", interviewer_name="Pablo"),
    ]
    db_session.add_all(allocations)
    db_session.add(
        UserProfile(
            user_id="hr@acme.example.com",
            email="hr@acme.example.com",
            role="recruiter",
            full_name="Acme HR",
            company_name="Acme",
            onboarding_completed=True,
        )
    )
    await db_session.commit()
    return {"event": event, "slots": slots, "allocations": allocations}
