"""Ticket domain models, rules and errors."""

from .errors import (
    AuthResolutionError,
    EquipmentNotFoundError,
    StoreWriteError,
    TicketNotFoundError,
    TicketValidationError,
    WorkflowError,
)
from .models import Ticket, TicketFilter, TicketHistoryEntry, TicketHistoryView
from .state import HistoryAction, TicketStateMachine, TicketStatus

__all__ = [
    "AuthResolutionError",
    "EquipmentNotFoundError",
    "HistoryAction",
    "StoreWriteError",
    "Ticket",
    "TicketFilter",
    "TicketHistoryEntry",
    "TicketHistoryView",
    "TicketNotFoundError",
    "TicketStateMachine",
    "TicketStatus",
    "TicketValidationError",
    "WorkflowError",
]
