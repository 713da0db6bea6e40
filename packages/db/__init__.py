"""Database models and utilities."""

from .models import (
    ClientTable,
    EquipmentTable,
    SystemUserTable,
    TicketHistoryTable,
    TicketTable,
)

__all__ = [
    "ClientTable",
    "EquipmentTable",
    "SystemUserTable",
    "TicketHistoryTable",
    "TicketTable",
]
