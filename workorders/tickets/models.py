from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Sequence

from workorders.equipment.models import Equipment, EquipmentStatus

from .state import HistoryAction, TicketStatus


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a field-service ticket."""

    id: str
    codigo: str
    client_id: str
    description: str
    scheduled_for: datetime
    status: TicketStatus
    faturado: bool
    faturado_at: datetime | None
    assigned_to: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    client_name: str | None = None
    assigned_name: str | None = None
    equipment: Sequence[Equipment] = field(default_factory=list)


@dataclass(slots=True)
class TicketHistoryEntry:
    """One append-only ledger record."""

    id: str
    ticket_id: str
    sequence: int
    action_type: HistoryAction
    status: TicketStatus
    previous_status: TicketStatus | None
    reason: str | None
    created_by: str
    created_at: datetime
    previous_assigned_to: str | None = None
    new_assigned_to: str | None = None
    equipment_id: str | None = None
    equipment_codigo: str | None = None
    equipment_status: EquipmentStatus | None = None


@dataclass(slots=True)
class TicketHistoryView:
    """Ledger record with actor and assignee names resolved for display."""

    entry: TicketHistoryEntry
    created_by_name: str | None
    previous_assigned_to_name: str | None = None
    new_assigned_to_name: str | None = None


@dataclass(frozen=True, slots=True)
class TicketFilter:
    """Criteria for ticket listings.

    ``viewer_id`` restricts the listing to tickets assigned to or created by
    that user; admins list with ``viewer_id=None``.
    """

    search: str | None = None
    status: TicketStatus | None = None
    created_from: date | None = None
    created_to: date | None = None
    client_id: str | None = None
    viewer_id: str | None = None
