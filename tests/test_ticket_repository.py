from __future__ import annotations

from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from packages.db.models import TicketHistoryTable
from workorders.core.db import utcnow
from workorders.equipment.models import EquipmentCondition
from workorders.equipment.repository import EquipmentRepository
from workorders.tickets.errors import StoreWriteError, TicketNotFoundError
from workorders.tickets.models import TicketFilter
from workorders.tickets.repository import TicketRepository
from workorders.tickets.state import HistoryAction, TicketStatus


@pytest.fixture
def repository(session_factory):
    return TicketRepository(session_factory)


@pytest_asyncio.fixture
async def tickets(repository, session_factory, seeded, now):
    assigned = await repository.create_ticket(
        client_id=seeded.client_id,
        description="Network outage in the warehouse",
        scheduled_for=now,
        created_by=seeded.admin_id,
        assigned_to=seeded.tech_id,
        status=TicketStatus.PENDENTE,
    )
    by_tech = await repository.create_ticket(
        client_id=seeded.other_client_id,
        description="Replace broken monitor",
        scheduled_for=now,
        created_by=seeded.tech_id,
        status=TicketStatus.PENDENTE,
    )
    in_progress = await repository.create_ticket(
        client_id=seeded.client_id,
        description="Server room cooling",
        scheduled_for=now,
        created_by=seeded.admin_id,
        status=TicketStatus.EM_ANDAMENTO,
    )
    await EquipmentRepository(session_factory).create_equipment(
        client_id=seeded.client_id,
        equipamento="Cisco switch",
        condicao=EquipmentCondition.DEFECTIVE,
        ticket_id=assigned.id,
    )
    return {"assigned": assigned, "by_tech": by_tech, "in_progress": in_progress}


@pytest.mark.asyncio
async def test_create_ticket_assigns_placeholder_code(tickets):
    ticket = tickets["assigned"]
    assert ticket.codigo.startswith("TEMP-TK-")
    assert ticket.status is TicketStatus.PENDENTE
    assert not ticket.faturado


@pytest.mark.asyncio
async def test_get_ticket_carries_names_and_equipment(repository, tickets):
    ticket = await repository.get_ticket(tickets["assigned"].id)

    assert ticket.client_name == "Acme Industria Ltda"
    assert ticket.assigned_name == "Bruno Tech"
    assert [item.equipamento for item in ticket.equipment] == ["Cisco switch"]
    assert await repository.get_ticket("missing") is None


@pytest.mark.asyncio
async def test_non_admin_visibility_limits_to_assigned_or_created(repository, seeded, tickets):
    visible = await repository.list_tickets(TicketFilter(viewer_id=seeded.tech_id))

    assert {ticket.id for ticket in visible} == {tickets["assigned"].id, tickets["by_tech"].id}
    assert len(await repository.list_tickets()) == 3


@pytest.mark.asyncio
async def test_search_matches_client_and_assignee_case_insensitively(repository, tickets):
    by_client = await repository.list_tickets(TicketFilter(search="GLOBEX"))
    by_assignee = await repository.list_tickets(TicketFilter(search="bruno"))
    by_code = await repository.list_tickets(TicketFilter(search=tickets["in_progress"].codigo))

    assert [ticket.id for ticket in by_client] == [tickets["by_tech"].id]
    assert [ticket.id for ticket in by_assignee] == [tickets["assigned"].id]
    assert [ticket.id for ticket in by_code] == [tickets["in_progress"].id]


@pytest.mark.asyncio
async def test_status_client_and_date_filters(repository, seeded, tickets):
    today = utcnow().date()

    in_progress = await repository.list_tickets(TicketFilter(status=TicketStatus.EM_ANDAMENTO))
    acme = await repository.list_tickets(TicketFilter(client_id=seeded.client_id))
    created_today = await repository.list_tickets(TicketFilter(created_from=today, created_to=today))
    long_ago = await repository.list_tickets(
        TicketFilter(created_from=date(2020, 1, 1), created_to=date(2020, 1, 31))
    )
    future = await repository.list_tickets(TicketFilter(created_from=today + timedelta(days=1)))

    assert [ticket.id for ticket in in_progress] == [tickets["in_progress"].id]
    assert len(acme) == 2
    assert len(created_today) == 3
    assert long_ago == []
    assert future == []


@pytest.mark.asyncio
async def test_history_orders_by_time_then_sequence(repository, seeded, tickets, now):
    ticket_id = tickets["assigned"].id
    async with repository.transaction() as tx:
        for note in ("first", "second", "third"):
            await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.PROGRESS_NOTE,
                status=TicketStatus.PENDENTE,
                reason=note,
                actor_id=seeded.tech_id,
                created_at=now,
            )

    history = await repository.list_history(ticket_id)

    assert [view.entry.reason for view in history] == ["third", "second", "first"]
    assert [view.entry.sequence for view in history] == [3, 2, 1]
    assert all(view.created_by_name == "Bruno Tech" for view in history)


@pytest.mark.asyncio
async def test_transaction_rolls_back_everything_on_error(repository, seeded, tickets, now):
    ticket_id = tickets["assigned"].id
    with pytest.raises(TicketNotFoundError):
        async with repository.transaction() as tx:
            await tx.update_ticket(ticket_id, status=TicketStatus.CANCELADO, updated_at=now)
            await tx.get_ticket("missing")

    ticket = await repository.get_ticket(ticket_id)
    assert ticket.status is TicketStatus.PENDENTE


@pytest.mark.asyncio
async def test_database_errors_surface_as_store_write_errors(repository, seeded, tickets, now):
    with pytest.raises(StoreWriteError):
        async with repository.transaction() as tx:
            await tx.append_history(
                ticket_id=tickets["assigned"].id,
                action_type=HistoryAction.PROGRESS_NOTE,
                status=TicketStatus.PENDENTE,
                reason="duplicate id",
                actor_id=seeded.tech_id,
                created_at=now,
            )
            await tx.update_ticket(tickets["assigned"].id, codigo=tickets["by_tech"].codigo)


@pytest.mark.asyncio
async def test_history_sequence_is_unique_per_ticket(session_factory, seeded, tickets, now):
    ticket_id = tickets["assigned"].id
    rows = [
        TicketHistoryTable(
            ticket_id=ticket_id,
            sequence=1,
            action_type=HistoryAction.PROGRESS_NOTE.value,
            status=TicketStatus.PENDENTE.value,
            reason=note,
            created_by=seeded.tech_id,
            created_at=now,
        )
        for note in ("first", "racing")
    ]

    with pytest.raises(IntegrityError):
        async with session_factory() as session:
            async with session.begin():
                session.add_all(rows)
