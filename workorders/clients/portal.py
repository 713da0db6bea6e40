"""Self-service portal where clients open and follow their own tickets."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from time import monotonic
from typing import Callable, Sequence

from workorders.tickets.models import Ticket, TicketFilter, TicketHistoryView
from workorders.tickets.repository import TicketRepository
from workorders.tickets.service import TicketService
from workorders.users.repository import SystemUserRepository

from .repository import ClientRepository
from .service import ClientValidationError, normalize_cnpj

logger = logging.getLogger(__name__)


class PortalError(RuntimeError):
    """Raised when a portal request cannot be served."""


class PortalAuthenticationError(PortalError):
    """Raised for unknown credentials or expired portal tokens."""


@dataclass(frozen=True, slots=True)
class PortalSession:
    client_id: str
    razao_social: str


@dataclass(slots=True)
class PortalTicket:
    ticket: Ticket
    history: Sequence[TicketHistoryView] = field(default_factory=list)


class PortalSessionStore:
    """Opaque portal tokens held in process memory."""

    def __init__(self, *, ttl_seconds: float | None = None, clock: Callable[[], float] = monotonic) -> None:
        self._sessions: dict[str, tuple[PortalSession, float]] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = Lock()

    def issue(self, session: PortalSession) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._sessions[token] = (session, now)
        return token

    def get(self, token: str | None) -> PortalSession | None:
        if not token:
            return None
        with self._lock:
            stored = self._sessions.get(token)
            if stored is None:
                return None
            session, issued_at = stored
            if self._is_expired(issued_at, self._clock()):
                del self._sessions[token]
                return None
            return session

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_expired(self, issued_at: float, now: float) -> bool:
        return self._ttl is not None and now - issued_at > self._ttl

    def _purge_expired(self, now: float) -> None:
        for token in [token for token, (_, issued_at) in self._sessions.items() if self._is_expired(issued_at, now)]:
            del self._sessions[token]


class PortalService:
    def __init__(
        self,
        *,
        clients: ClientRepository,
        tickets: TicketService,
        ticket_repository: TicketRepository,
        users: SystemUserRepository,
    ) -> None:
        self._clients = clients
        self._tickets = tickets
        self._ticket_repository = ticket_repository
        self._users = users

    async def login(self, email: str, cnpj: str) -> PortalSession:
        if not (email or "").strip():
            raise PortalAuthenticationError("Email is required")
        try:
            digits = normalize_cnpj(cnpj)
        except ClientValidationError as exc:
            raise PortalAuthenticationError(str(exc)) from exc
        client = await self._clients.find_by_email_and_cnpj(email, digits)
        if client is None:
            logger.warning("Portal login rejected for %s", email)
            raise PortalAuthenticationError("Client not found. Check the email and CNPJ")
        logger.info("Portal login for client %s", client.id)
        return PortalSession(client_id=client.id, razao_social=client.razao_social)

    async def submit_ticket(self, session: PortalSession, *, description: str, scheduled_for: datetime) -> Ticket:
        admin = await self._users.first_active_admin()
        if admin is None:
            logger.error("Portal ticket for client %s rejected: no active admin", session.client_id)
            raise PortalError("No active administrator is available to own the ticket")
        return await self._tickets.create_ticket(
            client_id=session.client_id,
            description=description,
            scheduled_for=scheduled_for,
            created_by=admin.id,
        )

    async def list_tickets(self, session: PortalSession) -> list[PortalTicket]:
        tickets = await self._tickets.list_tickets(TicketFilter(client_id=session.client_id))
        return [
            PortalTicket(ticket=ticket, history=await self._ticket_repository.list_history(ticket.id))
            for ticket in tickets
        ]
