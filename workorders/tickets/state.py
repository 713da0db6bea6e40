from __future__ import annotations

from enum import Enum
from typing import Iterable

from .errors import TicketValidationError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    PENDENTE = "PENDENTE"
    EM_ANDAMENTO = "EM_ANDAMENTO"
    CONCLUIDO = "CONCLUIDO"
    CANCELADO = "CANCELADO"


class HistoryAction(str, Enum):
    """Kinds of entries written to the ticket history ledger."""

    STATUS_CHANGE = "STATUS_CHANGE"
    USER_ASSIGNMENT = "USER_ASSIGNMENT"
    EQUIPMENT_STATUS = "EQUIPMENT_STATUS"
    PROGRESS_NOTE = "PROGRESS_NOTE"


class TicketStateMachine:
    """Rules for moving a ticket between statuses.

    Any status may move to any other status. Moving into a closing status
    (``CONCLUIDO`` or ``CANCELADO`` by default) needs a non-blank reason.
    Billing is orthogonal to status: it is only allowed from ``CONCLUIDO``
    and once a ticket is billed its status and assignee are frozen.
    """

    _DEFAULT_REASON_REQUIRED = frozenset({TicketStatus.CONCLUIDO, TicketStatus.CANCELADO})

    def __init__(self, reason_required: Iterable[TicketStatus | str] | None = None) -> None:
        if reason_required is None:
            self._reason_required = self._DEFAULT_REASON_REQUIRED
        else:
            self._reason_required = frozenset(TicketStatus(value) for value in reason_required)

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.PENDENTE

    def requires_reason(self, target: TicketStatus) -> bool:
        return target in self._reason_required

    def can_transition(self, current: TicketStatus, target: TicketStatus) -> bool:
        return isinstance(current, TicketStatus) and isinstance(target, TicketStatus)

    def assert_transition(self, current: TicketStatus, target: TicketStatus, reason: str | None) -> None:
        if not self.can_transition(current, target):
            raise TicketValidationError(f"Invalid ticket status transition: {current!s} -> {target!s}")
        self.assert_reason(target, reason)

    def assert_reason(self, target: TicketStatus, reason: str | None) -> None:
        if self.requires_reason(target) and not (reason or "").strip():
            raise TicketValidationError(f"A reason is required to move a ticket to {target.value}")

    def can_bill(self, status: TicketStatus, faturado: bool) -> bool:
        return status == TicketStatus.CONCLUIDO and not faturado

    def assert_billable(self, status: TicketStatus, faturado: bool) -> None:
        if faturado:
            raise TicketValidationError("Ticket is already billed")
        if not self.can_bill(status, faturado):
            raise TicketValidationError(
                f"Only {TicketStatus.CONCLUIDO.value} tickets can be billed, not {status.value}"
            )

    def assert_editable(self, faturado: bool) -> None:
        if faturado:
            raise TicketValidationError("Billed tickets can no longer change status or assignee")
