from __future__ import annotations

from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import SystemUserTable
from workorders.core.db import optional_datetime

from .models import Role, SystemUser


class SystemUserRepository:
    """Read access to the ``system_users`` directory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_user(self, user_id: str) -> SystemUser | None:
        async with self._session_factory() as session:
            row = await session.get(SystemUserTable, user_id)
            return None if row is None else table_to_user(row)

    async def list_users(self, *, active_only: bool = False) -> Sequence[SystemUser]:
        statement = select(SystemUserTable).order_by(SystemUserTable.name.asc())
        if active_only:
            statement = statement.where(SystemUserTable.active.is_(True))
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [table_to_user(row) for row in result.scalars().all()]

    async def first_active_admin(self) -> SystemUser | None:
        statement = (
            select(SystemUserTable)
            .where(SystemUserTable.role == Role.ADMIN.value)
            .where(SystemUserTable.active.is_(True))
            .order_by(SystemUserTable.created_at.asc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            row = result.scalars().first()
            return None if row is None else table_to_user(row)


def table_to_user(row: SystemUserTable) -> SystemUser:
    return SystemUser(
        id=row.id,
        name=row.name,
        email=row.email,
        role=Role(row.role),
        active=bool(row.active),
        created_at=optional_datetime(row.created_at),
    )
