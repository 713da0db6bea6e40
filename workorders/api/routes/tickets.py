from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from workorders.core.db import utcnow
from workorders.dependencies.auth import Actor, AdminUser, CurrentUser
from workorders.dependencies.services import get_ticket_service, get_ticket_workflow
from workorders.equipment.models import EquipmentStatus
from workorders.tickets.errors import (
    AuthResolutionError,
    EquipmentNotFoundError,
    StoreWriteError,
    TicketNotFoundError,
    TicketValidationError,
)
from workorders.tickets.models import Ticket, TicketFilter, TicketHistoryView
from workorders.tickets.service import TicketService
from workorders.tickets.state import HistoryAction, TicketStatus
from workorders.tickets.stats import calculate_status_counts, calculate_user_stats
from workorders.tickets.workflow import TicketWorkflow, WorkflowOutcome
from workorders.users.models import SystemUser

from .equipment import EquipmentResponse

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    client_id: str
    description: str = Field(..., min_length=1)
    scheduled_for: datetime
    assigned_to: str | None = None


class TicketStatusChangeRequest(BaseModel):
    status: TicketStatus
    reason: str | None = Field(default=None, max_length=2000)


class TicketAssignmentRequest(BaseModel):
    user_id: str
    previous_user_id: str | None = None


class ProgressNoteRequest(BaseModel):
    note: str = Field(..., max_length=4000)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    codigo: str
    client_id: str
    client_name: str | None
    description: str
    scheduled_for: datetime
    status: TicketStatus
    faturado: bool
    faturado_at: datetime | None
    assigned_to: str | None
    assigned_name: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    equipment: list[EquipmentResponse] = Field(default_factory=list)


class TicketHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    sequence: int
    action_type: HistoryAction
    status: TicketStatus
    previous_status: TicketStatus | None
    reason: str | None
    created_by: str
    created_by_name: str | None
    created_at: datetime
    previous_assigned_to: str | None
    previous_assigned_to_name: str | None
    new_assigned_to: str | None
    new_assigned_to_name: str | None
    equipment_id: str | None
    equipment_codigo: str | None
    equipment_status: EquipmentStatus | None


class NotificationResponse(BaseModel):
    level: str
    title: str
    description: str


class WorkflowOutcomeResponse(BaseModel):
    operation: str
    notification: NotificationResponse
    ticket: TicketResponse | None = None
    entry: TicketHistoryResponse | None = None


class UserStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: str
    total: int
    pending: int
    in_progress: int
    completed: int
    canceled: int


class TicketStatsResponse(BaseModel):
    users: list[UserStatsResponse]
    status_counts: dict[TicketStatus, int]


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
TicketWorkflowDep = Annotated[TicketWorkflow, Depends(get_ticket_workflow)]


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def to_history_response(view: TicketHistoryView) -> TicketHistoryResponse:
    entry = view.entry
    return TicketHistoryResponse(
        id=entry.id,
        ticket_id=entry.ticket_id,
        sequence=entry.sequence,
        action_type=entry.action_type,
        status=entry.status,
        previous_status=entry.previous_status,
        reason=entry.reason,
        created_by=entry.created_by,
        created_by_name=view.created_by_name,
        created_at=entry.created_at,
        previous_assigned_to=entry.previous_assigned_to,
        previous_assigned_to_name=view.previous_assigned_to_name,
        new_assigned_to=entry.new_assigned_to,
        new_assigned_to_name=view.new_assigned_to_name,
        equipment_id=entry.equipment_id,
        equipment_codigo=entry.equipment_codigo,
        equipment_status=entry.equipment_status,
    )


def _to_outcome_response(outcome: WorkflowOutcome) -> WorkflowOutcomeResponse:
    if not outcome:
        error = outcome.error
        detail = outcome.notification.description
        if isinstance(error, AuthResolutionError):
            raise HTTPException(status_code=401, detail=detail)
        if isinstance(error, (TicketNotFoundError, EquipmentNotFoundError)):
            raise HTTPException(status_code=404, detail=detail)
        if isinstance(error, TicketValidationError):
            raise HTTPException(status_code=422, detail=detail)
        raise HTTPException(status_code=502, detail=detail)

    entry = None
    if outcome.entry is not None:
        entry = to_history_response(TicketHistoryView(entry=outcome.entry, created_by_name=None))
    return WorkflowOutcomeResponse(
        operation=outcome.operation,
        notification=NotificationResponse(
            level=outcome.notification.level.value,
            title=outcome.notification.title,
            description=outcome.notification.description,
        ),
        ticket=None if outcome.ticket is None else _to_response(outcome.ticket),
        entry=entry,
    )


def _visibility(user: SystemUser) -> str | None:
    return None if user.is_admin else user.id


async def _load_ticket(service: TicketService, ticket_id: str) -> Ticket:
    try:
        return await service.get_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    user: CurrentUser,
    search: str | None = Query(default=None, max_length=255),
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    created_from: date | None = Query(default=None),
    created_to: date | None = Query(default=None),
    client_id: str | None = Query(default=None),
) -> list[TicketResponse]:
    criteria = TicketFilter(
        search=search or None,
        status=status_filter,
        created_from=created_from,
        created_to=created_to,
        client_id=client_id,
        viewer_id=_visibility(user),
    )
    tickets = await service.list_tickets(criteria)
    return [_to_response(ticket) for ticket in tickets]


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, user: CurrentUser) -> TicketResponse:
    try:
        ticket = await service.create_ticket(
            client_id=payload.client_id,
            description=payload.description,
            scheduled_for=payload.scheduled_for,
            created_by=user.id,
            assigned_to=payload.assigned_to,
        )
    except TicketValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreWriteError as exc:
        raise HTTPException(status_code=502, detail="The ticket could not be saved") from exc
    return _to_response(ticket)


@router.get("/stats", response_model=TicketStatsResponse)
async def ticket_stats(service: TicketServiceDep, user: CurrentUser) -> TicketStatsResponse:
    tickets = await service.list_tickets(TicketFilter(viewer_id=_visibility(user)))
    today = utcnow().date()
    return TicketStatsResponse(
        users=[UserStatsResponse.model_validate(item) for item in calculate_user_stats(tickets, today)],
        status_counts=calculate_status_counts(tickets, today),
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep, _: CurrentUser) -> TicketResponse:
    return _to_response(await _load_ticket(service, ticket_id))


@router.get("/{ticket_id}/history", response_model=list[TicketHistoryResponse])
async def get_ticket_history(
    ticket_id: str, workflow: TicketWorkflowDep, _: CurrentUser
) -> list[TicketHistoryResponse]:
    entries = await workflow.list_history(ticket_id)
    return [to_history_response(view) for view in entries]


@router.post("/{ticket_id}/status", response_model=WorkflowOutcomeResponse)
async def change_ticket_status(
    ticket_id: str,
    payload: TicketStatusChangeRequest,
    workflow: TicketWorkflowDep,
    _: CurrentUser,
    actor: Actor,
) -> WorkflowOutcomeResponse:
    outcome = await workflow.change_status(ticket_id, payload.status, payload.reason, actor=actor)
    return _to_outcome_response(outcome)


@router.post("/{ticket_id}/assignment", response_model=WorkflowOutcomeResponse)
async def assign_ticket(
    ticket_id: str,
    payload: TicketAssignmentRequest,
    workflow: TicketWorkflowDep,
    _: CurrentUser,
    actor: Actor,
) -> WorkflowOutcomeResponse:
    outcome = await workflow.assign_ticket(ticket_id, payload.user_id, payload.previous_user_id, actor=actor)
    return _to_outcome_response(outcome)


@router.post("/{ticket_id}/progress-notes", response_model=WorkflowOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def add_progress_note(
    ticket_id: str,
    payload: ProgressNoteRequest,
    service: TicketServiceDep,
    workflow: TicketWorkflowDep,
    _: CurrentUser,
    actor: Actor,
) -> WorkflowOutcomeResponse:
    ticket = await _load_ticket(service, ticket_id)
    outcome = await workflow.add_progress_note(ticket_id, payload.note, ticket.status, actor=actor)
    return _to_outcome_response(outcome)


@router.post("/{ticket_id}/equipment/{equipment_id}/delivery", response_model=WorkflowOutcomeResponse)
async def mark_equipment_delivered(
    ticket_id: str,
    equipment_id: str,
    service: TicketServiceDep,
    workflow: TicketWorkflowDep,
    _: CurrentUser,
    actor: Actor,
) -> WorkflowOutcomeResponse:
    ticket = await _load_ticket(service, ticket_id)
    equipment = next((item for item in ticket.equipment if item.id == equipment_id), None)
    if equipment is None:
        raise HTTPException(status_code=404, detail=f"Equipment {equipment_id} is not linked to this ticket")
    outcome = await workflow.mark_delivered(equipment.id, equipment.codigo, ticket.id, ticket.status, actor=actor)
    return _to_outcome_response(outcome)


@router.post("/{ticket_id}/billing", response_model=WorkflowOutcomeResponse)
async def bill_ticket(
    ticket_id: str,
    workflow: TicketWorkflowDep,
    _: AdminUser,
    actor: Actor,
) -> WorkflowOutcomeResponse:
    outcome = await workflow.mark_billed(ticket_id, actor=actor)
    return _to_outcome_response(outcome)
