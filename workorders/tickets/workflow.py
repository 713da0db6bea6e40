"""Ticket status, assignment, delivery, progress and billing workflow.

Every operation follows the same shape: validate input, resolve the acting
user, then apply the entity update and its ledger entry inside one store
transaction. Operations never raise; they log, build a user-facing
notification and hand back a ``WorkflowOutcome`` that is truthy on success.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Sequence

from opentelemetry import trace

from workorders.core.cache import EQUIPMENT_CACHE_PREFIX, TICKETS_CACHE_PREFIX, QueryCache
from workorders.core.db import utcnow
from workorders.core.logging import bind_log_context, log_context
from workorders.equipment.models import EquipmentStatus
from workorders.equipment.repository import delivered_values
from workorders.identity.resolver import ActorProvider
from workorders.metrics import (
    WORKFLOW_DURATION_SECONDS,
    WORKFLOW_OPERATIONS_TOTAL,
    MetricsRegistry,
    metrics_registry,
)
from workorders.metrics.base import track_duration

from .errors import (
    AuthResolutionError,
    EquipmentNotFoundError,
    StoreWriteError,
    TicketNotFoundError,
    TicketValidationError,
    WorkflowError,
)
from .models import Ticket, TicketHistoryEntry, TicketHistoryView
from .repository import TicketRepository, TicketTransaction
from .state import HistoryAction, TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BILLED_REASON = "Ticket billed"


def history_cache_key(ticket_id: str) -> tuple[str, str]:
    return ("ticket-history", ticket_id)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    """Message meant for the person who triggered the operation."""

    level: NotificationLevel
    title: str
    description: str


@dataclass(slots=True)
class WorkflowOutcome:
    operation: str
    ok: bool
    notification: Notification
    error: WorkflowError | None = None
    ticket: Ticket | None = None
    entry: TicketHistoryEntry | None = None

    def __bool__(self) -> bool:
        return self.ok


_AUTH_FAILURE = Notification(
    NotificationLevel.ERROR,
    "Authentication error",
    "Could not identify the current user. Please sign in again.",
)


@dataclass(slots=True)
class _Applied:
    ticket: Ticket | None
    entry: TicketHistoryEntry
    success: Notification


class TicketWorkflow:
    """Workflow operations over tickets and the history ledger."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        cache: QueryCache | None = None,
        state_machine: TicketStateMachine | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._state_machine = state_machine or TicketStateMachine()
        self._metrics = metrics or metrics_registry
        self._clock = clock

    @property
    def state_machine(self) -> TicketStateMachine:
        return self._state_machine

    async def change_status(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        reason: str | None = None,
        *,
        actor: ActorProvider,
    ) -> WorkflowOutcome:
        def validate() -> None:
            self._state_machine.assert_reason(_as_status(new_status), reason)

        async def apply(tx: TicketTransaction, actor_id: str, now: datetime) -> _Applied:
            target = _as_status(new_status)
            current = await tx.get_ticket(ticket_id)
            self._state_machine.assert_editable(current.faturado)
            self._state_machine.assert_transition(current.status, target, reason)
            updated = await tx.update_ticket(ticket_id, status=target, updated_at=now)
            entry = await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.STATUS_CHANGE,
                status=target,
                previous_status=current.status,
                reason=_clean(reason),
                actor_id=actor_id,
                created_at=now,
            )
            return _Applied(
                updated,
                entry,
                _success("Ticket status updated", f"Ticket status changed to {target.value}."),
            )

        return await self._run(
            "change_status",
            ticket_id,
            apply,
            actor=actor,
            validate=validate,
            failure_title="Failed to update ticket status",
        )

    async def assign_ticket(
        self,
        ticket_id: str,
        new_user_id: str,
        previous_user_id: str | None = None,
        *,
        actor: ActorProvider,
    ) -> WorkflowOutcome:
        def validate() -> None:
            if not new_user_id:
                raise TicketValidationError("An assignee is required")

        async def apply(tx: TicketTransaction, actor_id: str, now: datetime) -> _Applied:
            current = await tx.get_ticket(ticket_id)
            self._state_machine.assert_editable(current.faturado)
            assignee = await tx.get_user(new_user_id)
            if assignee is None or not assignee.active:
                raise TicketValidationError(f"User {new_user_id} is not an active system user")
            previous = previous_user_id if previous_user_id is not None else current.assigned_to
            updated = await tx.update_ticket(ticket_id, assigned_to=new_user_id, updated_at=now)
            # The ledger records EM_ANDAMENTO for assignments; the ticket row keeps its status.
            entry = await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.USER_ASSIGNMENT,
                status=TicketStatus.EM_ANDAMENTO,
                previous_assigned_to=previous,
                new_assigned_to=new_user_id,
                actor_id=actor_id,
                created_at=now,
            )
            return _Applied(updated, entry, _success("Ticket assigned", f"Ticket assigned to {assignee.name}."))

        return await self._run(
            "assign_ticket",
            ticket_id,
            apply,
            actor=actor,
            validate=validate,
            failure_title="Failed to assign ticket",
        )

    async def mark_delivered(
        self,
        equipment_id: str,
        equipment_code: str,
        ticket_id: str,
        current_ticket_status: TicketStatus,
        *,
        actor: ActorProvider,
    ) -> WorkflowOutcome:
        def validate() -> None:
            _as_status(current_ticket_status)

        async def apply(tx: TicketTransaction, actor_id: str, now: datetime) -> _Applied:
            await tx.get_ticket(ticket_id)
            equipment = await tx.get_equipment(equipment_id)
            if equipment is None:
                raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
            if equipment.ticket_id != ticket_id:
                raise EquipmentNotFoundError(f"Equipment {equipment_code} is not linked to ticket {ticket_id}")
            await tx.update_equipment(equipment_id, **delivered_values(now))
            entry = await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.EQUIPMENT_STATUS,
                status=_as_status(current_ticket_status),
                reason=f"Equipment {equipment_code} marked as delivered",
                equipment_id=equipment_id,
                equipment_codigo=equipment_code,
                equipment_status=EquipmentStatus.DELIVERED,
                actor_id=actor_id,
                created_at=now,
            )
            return _Applied(
                None,
                entry,
                _success("Equipment delivered", f"Equipment {equipment_code} was marked as delivered."),
            )

        return await self._run(
            "mark_delivered",
            ticket_id,
            apply,
            actor=actor,
            validate=validate,
            failure_title="Failed to mark equipment as delivered",
            extra_invalidations=(EQUIPMENT_CACHE_PREFIX,),
        )

    async def add_progress_note(
        self,
        ticket_id: str,
        note_text: str,
        current_status: TicketStatus,
        *,
        actor: ActorProvider,
    ) -> WorkflowOutcome:
        def validate() -> None:
            if not (note_text or "").strip():
                raise TicketValidationError("Progress note cannot be empty")
            _as_status(current_status)

        async def apply(tx: TicketTransaction, actor_id: str, now: datetime) -> _Applied:
            await tx.get_ticket(ticket_id)
            entry = await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.PROGRESS_NOTE,
                status=_as_status(current_status),
                reason=note_text.strip(),
                actor_id=actor_id,
                created_at=now,
            )
            return _Applied(None, entry, _success("Progress recorded", "The ticket progress note was saved."))

        return await self._run(
            "add_progress_note",
            ticket_id,
            apply,
            actor=actor,
            validate=validate,
            failure_title="Failed to record progress",
        )

    async def mark_billed(self, ticket_id: str, *, actor: ActorProvider) -> WorkflowOutcome:
        async def apply(tx: TicketTransaction, actor_id: str, now: datetime) -> _Applied:
            current = await tx.get_ticket(ticket_id)
            self._state_machine.assert_billable(current.status, current.faturado)
            updated = await tx.update_ticket(ticket_id, faturado=True, faturado_at=now, updated_at=now)
            entry = await tx.append_history(
                ticket_id=ticket_id,
                action_type=HistoryAction.STATUS_CHANGE,
                status=updated.status,
                reason=BILLED_REASON,
                actor_id=actor_id,
                created_at=now,
            )
            return _Applied(updated, entry, _success("Ticket billed", f"Ticket {updated.codigo} was billed."))

        return await self._run("mark_billed", ticket_id, apply, actor=actor, failure_title="Failed to bill ticket")

    async def list_history(self, ticket_id: str) -> Sequence[TicketHistoryView]:
        """Ledger entries for ``ticket_id``, newest first."""

        if self._cache is None:
            return await self._repository.list_history(ticket_id)
        return await self._cache.get_or_load(
            history_cache_key(ticket_id), lambda: self._repository.list_history(ticket_id)
        )

    async def _run(
        self,
        operation: str,
        ticket_id: str,
        apply: Callable[[TicketTransaction, str, datetime], Awaitable[_Applied]],
        *,
        actor: ActorProvider,
        failure_title: str,
        validate: Callable[[], None] | None = None,
        extra_invalidations: Sequence[tuple[str, ...]] = (),
    ) -> WorkflowOutcome:
        duration = self._metrics.distribution(WORKFLOW_DURATION_SECONDS, label_names=("operation",))
        with log_context(operation=operation), track_duration(
            duration, labels={"operation": operation}
        ), tracer.start_as_current_span(f"ticket_workflow.{operation}") as span:
            span.set_attribute("ticket.id", ticket_id)
            try:
                if validate is not None:
                    validate()
                actor_id = await actor.resolve_actor_id()
                if actor_id is None:
                    raise AuthResolutionError("Could not resolve the acting user")
                span.set_attribute("actor.id", actor_id)
                bind_log_context(actor=actor_id)
                async with self._repository.transaction() as tx:
                    applied = await apply(tx, actor_id, self._clock())
            except WorkflowError as exc:
                outcome = self._failure(operation, ticket_id, exc, failure_title)
                span.set_attribute("workflow.outcome", "failure")
            else:
                self._invalidate(ticket_id, extra_invalidations)
                logger.info(
                    "%s on ticket %s by %s recorded as %s",
                    operation,
                    ticket_id,
                    actor_id,
                    applied.entry.action_type.value,
                )
                outcome = WorkflowOutcome(
                    operation=operation,
                    ok=True,
                    notification=applied.success,
                    ticket=applied.ticket,
                    entry=applied.entry,
                )
                span.set_attribute("workflow.outcome", "success")

        self._metrics.counter(WORKFLOW_OPERATIONS_TOTAL, label_names=("operation", "outcome")).inc(
            labels={"operation": operation, "outcome": "success" if outcome.ok else "failure"}
        )
        return outcome

    def _failure(self, operation: str, ticket_id: str, exc: WorkflowError, title: str) -> WorkflowOutcome:
        if isinstance(exc, AuthResolutionError):
            logger.error("%s on ticket %s aborted: no acting user", operation, ticket_id)
            notification = _AUTH_FAILURE
        elif isinstance(exc, (TicketValidationError, TicketNotFoundError, EquipmentNotFoundError)):
            logger.warning("%s on ticket %s rejected: %s", operation, ticket_id, exc)
            notification = Notification(NotificationLevel.ERROR, title, str(exc))
        else:
            logger.error(
                "%s on ticket %s failed: %s",
                operation,
                ticket_id,
                exc,
                exc_info=isinstance(exc, StoreWriteError),
            )
            notification = Notification(NotificationLevel.ERROR, title, "The change could not be saved.")
        return WorkflowOutcome(operation=operation, ok=False, notification=notification, error=exc)

    def _invalidate(self, ticket_id: str, extra: Sequence[tuple[str, ...]]) -> None:
        if self._cache is None:
            return
        self._cache.invalidate(TICKETS_CACHE_PREFIX, history_cache_key(ticket_id), *extra)


def _success(title: str, description: str) -> Notification:
    return Notification(NotificationLevel.SUCCESS, title, description)


def _as_status(value: TicketStatus | str) -> TicketStatus:
    try:
        return TicketStatus(value)
    except ValueError as exc:
        raise TicketValidationError(f"Unknown ticket status: {value!r}") from exc


def _clean(reason: str | None) -> str | None:
    if reason is None:
        return None
    stripped = reason.strip()
    return stripped or None
