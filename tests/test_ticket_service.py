from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from workorders.core.cache import QueryCache
from workorders.tickets.errors import TicketNotFoundError, TicketValidationError
from workorders.tickets.models import Ticket, TicketFilter
from workorders.tickets.service import TicketService
from workorders.tickets.state import TicketStatus

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class DummyRepository:
    def __init__(self):
        self.create_ticket = AsyncMock()
        self.get_ticket = AsyncMock(return_value=None)
        self.list_tickets = AsyncMock(return_value=[])


def _make_ticket(**overrides) -> Ticket:
    values = dict(
        id="ticket-1",
        codigo="TK000001",
        client_id="client-1",
        description="Printer offline",
        scheduled_for=NOW,
        status=TicketStatus.PENDENTE,
        faturado=False,
        faturado_at=None,
        assigned_to=None,
        created_by="user-admin",
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return Ticket(**values)


@pytest.mark.asyncio
async def test_create_ticket_starts_pending_and_clears_listings():
    repository = DummyRepository()
    repository.create_ticket.return_value = _make_ticket()
    cache = QueryCache()
    cache.set(("tickets", TicketFilter()), ["stale"])
    service = TicketService(repository, cache=cache)

    ticket = await service.create_ticket(
        client_id="client-1",
        description="  Printer offline  ",
        scheduled_for=NOW,
        created_by="user-admin",
    )

    assert ticket.codigo == "TK000001"
    kwargs = repository.create_ticket.await_args.kwargs
    assert kwargs["status"] is TicketStatus.PENDENTE
    assert kwargs["description"] == "Printer offline"
    assert kwargs["assigned_to"] is None
    assert len(cache) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"client_id": ""},
        {"description": "   "},
        {"scheduled_for": None},
    ],
)
async def test_create_ticket_validates_required_fields(overrides):
    repository = DummyRepository()
    service = TicketService(repository)
    arguments = dict(client_id="client-1", description="desc", scheduled_for=NOW, created_by="user-admin")
    arguments.update(overrides)

    with pytest.raises(TicketValidationError):
        await service.create_ticket(**arguments)

    repository.create_ticket.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_ticket_raises_when_missing():
    service = TicketService(DummyRepository())

    with pytest.raises(TicketNotFoundError):
        await service.get_ticket("nope")


@pytest.mark.asyncio
async def test_list_tickets_is_cached_per_filter():
    repository = DummyRepository()
    repository.list_tickets.return_value = [_make_ticket()]
    service = TicketService(repository, cache=QueryCache())
    criteria = TicketFilter(status=TicketStatus.PENDENTE)

    await service.list_tickets(criteria)
    await service.list_tickets(criteria)
    await service.list_tickets(TicketFilter(search="printer"))

    assert repository.list_tickets.await_count == 2
