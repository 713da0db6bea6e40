from __future__ import annotations

import uuid
from typing import Any, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import ClientTable, EquipmentTable, TicketTable
from workorders.core.db import optional_datetime, utcnow
from workorders.tickets.errors import StoreWriteError

from .models import Client


class DuplicateClientError(StoreWriteError):
    """Raised when a client with the same CNPJ already exists."""


class ClientRepository:
    """Persistence helper for ``clients``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_client(self, **values: Any) -> Client:
        row = ClientTable(id=str(uuid.uuid4()), created_at=utcnow(), **values)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
                return table_to_client(row)
        except IntegrityError as exc:
            raise DuplicateClientError(f"A client with CNPJ {values.get('cnpj')} already exists") from exc
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to insert client: {exc}") from exc

    async def update_client(self, client_id: str, **values: Any) -> Client | None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(ClientTable, client_id)
                    if row is None:
                        return None
                    for name, value in values.items():
                        setattr(row, name, value)
                return table_to_client(row)
        except IntegrityError as exc:
            raise DuplicateClientError(f"A client with CNPJ {values.get('cnpj')} already exists") from exc
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to update client {client_id}: {exc}") from exc

    async def get_client(self, client_id: str) -> Client | None:
        async with self._session_factory() as session:
            row = await session.get(ClientTable, client_id)
            return None if row is None else table_to_client(row)

    async def list_clients(self, *, search: str | None = None) -> Sequence[Client]:
        statement = select(ClientTable).order_by(ClientTable.razao_social.asc())
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(
                    ClientTable.razao_social.ilike(pattern),
                    ClientTable.nome_fantasia.ilike(pattern),
                    ClientTable.cnpj.ilike(pattern),
                )
            )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [table_to_client(row) for row in result.scalars().all()]

    async def find_by_email_and_cnpj(self, email: str, cnpj: str) -> Client | None:
        statement = (
            select(ClientTable)
            .where(func.lower(ClientTable.email) == email.strip().lower())
            .where(ClientTable.cnpj == cnpj)
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            row = result.scalars().first()
            return None if row is None else table_to_client(row)

    async def is_referenced(self, client_id: str) -> bool:
        async with self._session_factory() as session:
            tickets = await session.execute(
                select(func.count()).select_from(TicketTable).where(TicketTable.client_id == client_id)
            )
            if tickets.scalar_one():
                return True
            equipment = await session.execute(
                select(func.count()).select_from(EquipmentTable).where(EquipmentTable.client_id == client_id)
            )
            return bool(equipment.scalar_one())

    async def delete_client(self, client_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(ClientTable, client_id)
                    if row is None:
                        return False
                    await session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to delete client {client_id}: {exc}") from exc


def table_to_client(row: ClientTable) -> Client:
    return Client(
        id=row.id,
        cnpj=row.cnpj,
        razao_social=row.razao_social,
        nome_fantasia=row.nome_fantasia,
        endereco=row.endereco,
        cep=row.cep,
        telefone=row.telefone,
        email=row.email,
        observacoes=row.observacoes,
        created_at=optional_datetime(row.created_at),
    )
