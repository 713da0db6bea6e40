"""Dashboard counters computed over an already loaded ticket listing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .models import Ticket
from .state import TicketStatus


@dataclass(slots=True)
class UserStats:
    user_id: str
    name: str
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    canceled: int = 0


def _created_on(ticket: Ticket, day: date) -> bool:
    return ticket.created_at.date() == day


def calculate_user_stats(tickets: Iterable[Ticket], today: date) -> list[UserStats]:
    """Per-assignee workload.

    Unassigned tickets are ignored, as are billed tickets not created
    ``today``. Completed and cancelled tickets only count when created today.
    """

    stats: dict[str, UserStats] = {}
    for ticket in tickets:
        if not ticket.assigned_to:
            continue
        is_today = _created_on(ticket, today)
        if ticket.faturado and not is_today:
            continue

        entry = stats.get(ticket.assigned_to)
        if entry is None:
            entry = UserStats(user_id=ticket.assigned_to, name=ticket.assigned_name or "User")
            stats[ticket.assigned_to] = entry

        entry.total += 1
        if ticket.status == TicketStatus.PENDENTE:
            entry.pending += 1
        elif ticket.status == TicketStatus.EM_ANDAMENTO:
            entry.in_progress += 1
        elif ticket.status == TicketStatus.CONCLUIDO and is_today:
            entry.completed += 1
        elif ticket.status == TicketStatus.CANCELADO and is_today:
            entry.canceled += 1
    return list(stats.values())


def calculate_status_counts(tickets: Iterable[Ticket], today: date) -> dict[TicketStatus, int]:
    """Count tickets per status; closed ones only when created ``today``."""

    counts = {status: 0 for status in TicketStatus}
    for ticket in tickets:
        closed = ticket.status in (TicketStatus.CONCLUIDO, TicketStatus.CANCELADO)
        if closed and not _created_on(ticket, today):
            continue
        counts[ticket.status] += 1
    return counts
