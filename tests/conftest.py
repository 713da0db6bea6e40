from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from packages.db.models import ClientTable, SystemUserTable

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded(session_factory: async_sessionmaker) -> SimpleNamespace:
    """Two clients, an admin, a technician and a deactivated user."""

    admin = SystemUserTable(
        id="user-admin", name="Ana Admin", email="ana@example.com", role="admin", active=True,
        created_at=FIXED_NOW - timedelta(days=30),
    )
    tech = SystemUserTable(
        id="user-tech", name="Bruno Tech", email="bruno@example.com", role="user", active=True,
        created_at=FIXED_NOW - timedelta(days=20),
    )
    inactive = SystemUserTable(
        id="user-gone", name="Carla Former", email="carla@example.com", role="user", active=False,
        created_at=FIXED_NOW - timedelta(days=10),
    )
    acme = ClientTable(
        id="client-acme", cnpj="12345678000195", razao_social="Acme Industria Ltda",
        nome_fantasia="Acme", email="contato@acme.com.br", created_at=FIXED_NOW,
    )
    globex = ClientTable(
        id="client-globex", cnpj="98765432000110", razao_social="Globex Servicos SA",
        email="ti@globex.com.br", created_at=FIXED_NOW,
    )
    async with session_factory() as session:
        async with session.begin():
            session.add_all([admin, tech, inactive, acme, globex])

    return SimpleNamespace(
        admin_id=admin.id,
        tech_id=tech.id,
        inactive_id=inactive.id,
        client_id=acme.id,
        other_client_id=globex.id,
    )


@pytest.fixture
def now():
    return FIXED_NOW
