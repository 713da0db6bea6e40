from __future__ import annotations


class WorkflowError(RuntimeError):
    """Base error for ticket workflow issues."""


class AuthResolutionError(WorkflowError):
    """Raised when the acting user could not be determined."""


class StoreWriteError(WorkflowError):
    """Raised when the database rejects an update or insert."""


class TicketValidationError(WorkflowError, ValueError):
    """Raised when input breaks a workflow rule; nothing has been written."""


class TicketNotFoundError(WorkflowError):
    """Raised when an operation targets a non-existent ticket."""


class EquipmentNotFoundError(WorkflowError):
    """Raised when an operation targets non-existent equipment."""
