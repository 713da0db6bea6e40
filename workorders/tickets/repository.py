from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, time, timezone
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased
from sqlmodel import select

from packages.db.models import (
    ClientTable,
    EquipmentTable,
    SystemUserTable,
    TicketHistoryTable,
    TicketTable,
)
from workorders.core.db import ensure_datetime, optional_datetime, utcnow
from workorders.equipment.models import Equipment, EquipmentStatus
from workorders.equipment.repository import placeholder_code, table_to_equipment
from workorders.users.models import SystemUser
from workorders.users.repository import table_to_user

from .errors import StoreWriteError, TicketNotFoundError
from .models import Ticket, TicketFilter, TicketHistoryEntry, TicketHistoryView
from .state import HistoryAction, TicketStatus


class TicketTransaction:
    """Reads and writes bound to one database transaction.

    Everything done through a transaction commits together when the
    ``TicketRepository.transaction`` block exits cleanly and is rolled back
    when it raises.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_ticket(self, ticket_id: str) -> Ticket:
        row = await self._session.get(TicketTable, ticket_id, with_for_update=True)
        if row is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return table_to_ticket(row)

    async def update_ticket(self, ticket_id: str, **values: Any) -> Ticket:
        row = await self._session.get(TicketTable, ticket_id)
        if row is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        for name, value in values.items():
            setattr(row, name, value.value if isinstance(value, TicketStatus) else value)
        await self._session.flush()
        return table_to_ticket(row)

    async def get_equipment(self, equipment_id: str) -> Equipment | None:
        row = await self._session.get(EquipmentTable, equipment_id, with_for_update=True)
        return None if row is None else table_to_equipment(row)

    async def update_equipment(self, equipment_id: str, **values: Any) -> Equipment | None:
        row = await self._session.get(EquipmentTable, equipment_id)
        if row is None:
            return None
        for name, value in values.items():
            setattr(row, name, value)
        row.updated_at = utcnow()
        await self._session.flush()
        return table_to_equipment(row)

    async def get_user(self, user_id: str) -> SystemUser | None:
        row = await self._session.get(SystemUserTable, user_id)
        return None if row is None else table_to_user(row)

    async def append_history(
        self,
        *,
        ticket_id: str,
        action_type: HistoryAction,
        status: TicketStatus,
        actor_id: str,
        created_at: datetime,
        previous_status: TicketStatus | None = None,
        reason: str | None = None,
        previous_assigned_to: str | None = None,
        new_assigned_to: str | None = None,
        equipment_id: str | None = None,
        equipment_codigo: str | None = None,
        equipment_status: EquipmentStatus | None = None,
    ) -> TicketHistoryEntry:
        """Append a ledger row with the next per-ticket ``sequence``.

        The caller holds the ticket row lock taken by ``get_ticket``.
        """

        result = await self._session.execute(
            select(func.max(TicketHistoryTable.sequence)).where(TicketHistoryTable.ticket_id == ticket_id)
        )
        sequence = (result.scalar() or 0) + 1
        row = TicketHistoryTable(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            sequence=sequence,
            action_type=action_type.value,
            status=status.value,
            previous_status=None if previous_status is None else previous_status.value,
            reason=reason,
            created_by=actor_id,
            previous_assigned_to=previous_assigned_to,
            new_assigned_to=new_assigned_to,
            equipment_id=equipment_id,
            equipment_codigo=equipment_codigo,
            equipment_status=None if equipment_status is None else equipment_status.value,
            created_at=created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return table_to_history(row)


class TicketRepository:
    """Data access layer for tickets and their history ledger."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TicketTransaction]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield TicketTransaction(session)
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Ticket store rejected the write: {exc}") from exc

    async def create_ticket(
        self,
        *,
        client_id: str,
        description: str,
        scheduled_for: datetime,
        created_by: str,
        status: TicketStatus,
        assigned_to: str | None = None,
    ) -> Ticket:
        now = utcnow()
        row = TicketTable(
            id=str(uuid.uuid4()),
            codigo=placeholder_code("TK"),
            client_id=client_id,
            description=description,
            scheduled_for=scheduled_for,
            status=status.value,
            faturado=False,
            faturado_at=None,
            assigned_to=assigned_to,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
                await session.refresh(row)
                return table_to_ticket(row)
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to insert ticket: {exc}") from exc

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        tickets = await self._select_tickets(TicketFilter(), ticket_ids=[ticket_id])
        return tickets[0] if tickets else None

    async def list_tickets(self, criteria: TicketFilter | None = None) -> Sequence[Ticket]:
        return await self._select_tickets(criteria or TicketFilter())

    async def list_history(self, ticket_id: str) -> Sequence[TicketHistoryView]:
        actor = aliased(SystemUserTable)
        previous = aliased(SystemUserTable)
        new = aliased(SystemUserTable)
        statement = (
            select(TicketHistoryTable, actor.name, previous.name, new.name)
            .outerjoin(actor, actor.id == TicketHistoryTable.created_by)
            .outerjoin(previous, previous.id == TicketHistoryTable.previous_assigned_to)
            .outerjoin(new, new.id == TicketHistoryTable.new_assigned_to)
            .where(TicketHistoryTable.ticket_id == ticket_id)
            .order_by(TicketHistoryTable.created_at.desc(), TicketHistoryTable.sequence.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            rows = result.all()
        return [
            TicketHistoryView(
                entry=table_to_history(row),
                created_by_name=actor_name,
                previous_assigned_to_name=previous_name,
                new_assigned_to_name=new_name,
            )
            for row, actor_name, previous_name, new_name in rows
        ]

    async def _select_tickets(
        self, criteria: TicketFilter, *, ticket_ids: Sequence[str] | None = None
    ) -> list[Ticket]:
        assignee = aliased(SystemUserTable)
        statement = (
            select(TicketTable, ClientTable.razao_social, assignee.name)
            .outerjoin(ClientTable, ClientTable.id == TicketTable.client_id)
            .outerjoin(assignee, assignee.id == TicketTable.assigned_to)
            .order_by(TicketTable.created_at.desc())
        )
        if ticket_ids is not None:
            statement = statement.where(TicketTable.id.in_(list(ticket_ids)))
        if criteria.viewer_id is not None:
            statement = statement.where(
                or_(TicketTable.assigned_to == criteria.viewer_id, TicketTable.created_by == criteria.viewer_id)
            )
        if criteria.client_id is not None:
            statement = statement.where(TicketTable.client_id == criteria.client_id)
        if criteria.search:
            pattern = f"%{criteria.search.strip()}%"
            statement = statement.where(
                or_(
                    TicketTable.codigo.ilike(pattern),
                    ClientTable.razao_social.ilike(pattern),
                    assignee.name.ilike(pattern),
                )
            )
        if criteria.status is not None:
            statement = statement.where(TicketTable.status == criteria.status.value)
        if criteria.created_from is not None:
            start = datetime.combine(criteria.created_from, time.min, tzinfo=timezone.utc)
            statement = statement.where(TicketTable.created_at >= start)
        if criteria.created_to is not None:
            end = datetime.combine(criteria.created_to, time.max, tzinfo=timezone.utc)
            statement = statement.where(TicketTable.created_at <= end)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            rows = result.all()
            ids = [row.id for row, _, _ in rows]
            equipment_by_ticket: dict[str, list[Equipment]] = {ticket_id: [] for ticket_id in ids}
            if ids:
                equipment_result = await session.execute(
                    select(EquipmentTable)
                    .where(EquipmentTable.ticket_id.in_(ids))
                    .order_by(EquipmentTable.created_at.asc())
                )
                for equipment_row in equipment_result.scalars().all():
                    equipment_by_ticket[equipment_row.ticket_id].append(table_to_equipment(equipment_row))

        return [
            table_to_ticket(
                row,
                client_name=client_name,
                assigned_name=assigned_name,
                equipment=equipment_by_ticket.get(row.id, []),
            )
            for row, client_name, assigned_name in rows
        ]


def table_to_ticket(
    row: TicketTable,
    *,
    client_name: str | None = None,
    assigned_name: str | None = None,
    equipment: Sequence[Equipment] = (),
) -> Ticket:
    return Ticket(
        id=row.id,
        codigo=row.codigo,
        client_id=row.client_id,
        description=row.description,
        scheduled_for=ensure_datetime(row.scheduled_for),
        status=TicketStatus(row.status),
        faturado=bool(row.faturado),
        faturado_at=optional_datetime(row.faturado_at),
        assigned_to=row.assigned_to,
        created_by=row.created_by,
        created_at=ensure_datetime(row.created_at),
        updated_at=ensure_datetime(row.updated_at),
        client_name=client_name,
        assigned_name=assigned_name,
        equipment=list(equipment),
    )


def table_to_history(row: TicketHistoryTable) -> TicketHistoryEntry:
    previous_status = row.previous_status
    equipment_status = row.equipment_status
    return TicketHistoryEntry(
        id=row.id,
        ticket_id=row.ticket_id,
        sequence=int(row.sequence),
        action_type=HistoryAction(row.action_type),
        status=TicketStatus(row.status),
        previous_status=TicketStatus(previous_status) if previous_status else None,
        reason=row.reason,
        created_by=row.created_by,
        created_at=ensure_datetime(row.created_at),
        previous_assigned_to=row.previous_assigned_to,
        new_assigned_to=row.new_assigned_to,
        equipment_id=row.equipment_id,
        equipment_codigo=row.equipment_codigo,
        equipment_status=EquipmentStatus(equipment_status) if equipment_status else None,
    )
