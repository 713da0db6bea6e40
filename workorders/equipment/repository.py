from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import EquipmentTable, TicketTable
from workorders.core.db import ensure_datetime, optional_datetime, utcnow
from workorders.tickets.errors import StoreWriteError

from .models import Equipment, EquipmentCondition, EquipmentStatus


def placeholder_code(prefix: str) -> str:
    """Unique stand-in value; the database trigger replaces it with the real code."""

    return f"TEMP-{prefix}-{uuid.uuid4().hex[:12]}"


class EquipmentRepository:
    """Persistence helper for ``equipamentos``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_equipment(
        self,
        *,
        client_id: str,
        equipamento: str,
        condicao: EquipmentCondition,
        numero_serie: str | None = None,
        observacoes: str | None = None,
        ticket_id: str | None = None,
    ) -> Equipment:
        now = utcnow()
        row = EquipmentTable(
            id=str(uuid.uuid4()),
            codigo=placeholder_code("EQ"),
            client_id=client_id,
            ticket_id=ticket_id,
            equipamento=equipamento,
            numero_serie=numero_serie,
            condicao=condicao.value,
            observacoes=observacoes,
            status=EquipmentStatus.WITHDRAWN.value,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
                await session.refresh(row)
                return table_to_equipment(row)
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to insert equipment: {exc}") from exc

    async def get_equipment(self, equipment_id: str) -> Equipment | None:
        async with self._session_factory() as session:
            row = await session.get(EquipmentTable, equipment_id)
            return None if row is None else table_to_equipment(row)

    async def list_equipment(
        self, *, client_id: str | None = None, ticket_id: str | None = None
    ) -> Sequence[Equipment]:
        statement = select(EquipmentTable).order_by(EquipmentTable.created_at.desc())
        if client_id is not None:
            statement = statement.where(EquipmentTable.client_id == client_id)
        if ticket_id is not None:
            statement = statement.where(EquipmentTable.ticket_id == ticket_id)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [table_to_equipment(row) for row in result.scalars().all()]

    async def update_equipment(self, equipment_id: str, **values: Any) -> Equipment | None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(EquipmentTable, equipment_id)
                    if row is None:
                        return None
                    for name, value in values.items():
                        setattr(row, name, value)
                    row.updated_at = utcnow()
                return table_to_equipment(row)
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to update equipment {equipment_id}: {exc}") from exc

    async def delete_equipment(self, equipment_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(EquipmentTable, equipment_id)
                    if row is None:
                        return False
                    await session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to delete equipment {equipment_id}: {exc}") from exc

    async def get_ticket_client(self, ticket_id: str) -> str | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            return None if row is None else row.client_id


def table_to_equipment(row: EquipmentTable) -> Equipment:
    return Equipment(
        id=row.id,
        codigo=row.codigo,
        client_id=row.client_id,
        ticket_id=row.ticket_id,
        equipamento=row.equipamento,
        numero_serie=row.numero_serie,
        condicao=EquipmentCondition(row.condicao),
        observacoes=row.observacoes,
        status=EquipmentStatus(row.status or EquipmentStatus.WITHDRAWN.value),
        entregue_at=optional_datetime(row.entregue_at),
        created_at=ensure_datetime(row.created_at),
        updated_at=ensure_datetime(row.updated_at),
    )


def delivered_values(at: datetime) -> dict[str, Any]:
    return {"status": EquipmentStatus.DELIVERED.value, "entregue_at": at}
