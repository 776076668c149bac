"""
Shared fixtures: a throwaway SQLite database per test, gateways bound to
fresh sessions, and an in-process HTTP client against the FastAPI app.
"""
from typing import Dict
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.domain import models  # noqa: F401
from society_gate.domain.actors import Actor, Role
from society_gate.domain.models import Resident
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.database import get_session

DELIVERY = {
    "delivery_person_name": "Ravi Kumar",
    "phone": "9876543210",
    "delivery_company": "Amazon",
    "apartment": "A-101",
}

VISITOR = {
    "name": "Kiran Shah",
    "phone": "9123456780",
    "flat_no": "A-101",
    "purpose": "Guest",
}

STAFF = {
    "name": "Meena",
    "role": "maid",
    "permanent_id": "S-42",
}

ALERT = {
    "type": "Fire",
    "location": "Tower B lobby",
    "description": "Smoke coming from the electrical room",
}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'society_gate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def society_id() -> UUID:
    return uuid4()


@pytest.fixture
async def resident(session, society_id) -> Resident:
    resident = Resident(society_id=society_id, name="Asha Rao", flat_no="A-101", phone="9000000001")
    session.add(resident)
    await session.commit()
    return resident


@pytest.fixture
async def neighbour(session, society_id) -> Resident:
    resident = Resident(society_id=society_id, name="Vikram Iyer", flat_no="B-205", phone="9000000002")
    session.add(resident)
    await session.commit()
    return resident


@pytest.fixture
def security() -> Actor:
    return Actor(actor_id="guard-1", role=Role.SECURITY, name="Main gate")


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def resident_actor(resident) -> Actor:
    return Actor(actor_id=str(resident.id), role=Role.RESIDENT, name=resident.name)


@pytest.fixture
def neighbour_actor(neighbour) -> Actor:
    return Actor(actor_id=str(neighbour.id), role=Role.RESIDENT, name=neighbour.name)


@pytest.fixture
async def gate(session_maker, society_id):
    """Gateway factory; every call gets its own session, like one request"""
    sessions = []

    def make(actor: Actor, tenant_id: UUID = None) -> VerificationGateway:
        session = session_maker()
        sessions.append(session)
        return VerificationGateway(session, tenant_id or society_id, actor)

    yield make

    for session in sessions:
        await session.close()


@pytest.fixture
async def client(session_maker):
    from society_gate.main import app

    async def override_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def headers(society_id):
    def build(actor: Actor, tenant_id: UUID = None) -> Dict[str, str]:
        return {
            "X-Society-ID": str(tenant_id or society_id),
            "X-Actor-ID": actor.actor_id,
            "X-Actor-Role": actor.role.value,
        }

    return build
