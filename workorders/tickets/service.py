from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from workorders.core.cache import TICKETS_CACHE_PREFIX, QueryCache

from .errors import TicketNotFoundError, TicketValidationError
from .models import Ticket, TicketFilter
from .repository import TicketRepository
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)


class TicketService:
    """Ticket intake and read-side listings."""

    def __init__(self, repository: TicketRepository, *, cache: QueryCache | None = None) -> None:
        self._repository = repository
        self._cache = cache

    async def create_ticket(
        self,
        *,
        client_id: str,
        description: str,
        scheduled_for: datetime,
        created_by: str,
        assigned_to: str | None = None,
        status: TicketStatus | None = None,
    ) -> Ticket:
        if not client_id:
            raise TicketValidationError("A client is required")
        if not (description or "").strip():
            raise TicketValidationError("A description is required")
        if scheduled_for is None:
            raise TicketValidationError("A scheduled date is required")

        ticket = await self._repository.create_ticket(
            client_id=client_id,
            description=description.strip(),
            scheduled_for=scheduled_for,
            created_by=created_by,
            assigned_to=assigned_to,
            status=status or TicketStateMachine.initial_state(),
        )
        logger.info("Ticket %s created for client %s by %s", ticket.codigo, client_id, created_by)
        if self._cache is not None:
            self._cache.invalidate(TICKETS_CACHE_PREFIX)
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def list_tickets(self, criteria: TicketFilter | None = None) -> Sequence[Ticket]:
        criteria = criteria or TicketFilter()
        if self._cache is None:
            return await self._repository.list_tickets(criteria)
        return await self._cache.get_or_load(
            (*TICKETS_CACHE_PREFIX, criteria), lambda: self._repository.list_tickets(criteria)
        )
