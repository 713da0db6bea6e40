from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from workorders.clients.portal import (
    PortalAuthenticationError,
    PortalError,
    PortalService,
    PortalSession,
    PortalSessionStore,
)
from workorders.dependencies.services import get_portal_service, get_portal_sessions
from workorders.tickets.errors import StoreWriteError, TicketValidationError

from .tickets import TicketHistoryResponse, TicketResponse, to_history_response

router = APIRouter(prefix="/portal", tags=["portal"])


class PortalLoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    cnpj: str = Field(..., min_length=14, max_length=18)


class PortalLoginResponse(BaseModel):
    token: str
    client_id: str
    razao_social: str


class PortalTicketRequest(BaseModel):
    description: str = Field(..., min_length=1)
    scheduled_for: datetime


class PortalTicketResponse(BaseModel):
    ticket: TicketResponse
    history: list[TicketHistoryResponse]


PortalServiceDep = Annotated[PortalService, Depends(get_portal_service)]
PortalSessionsDep = Annotated[PortalSessionStore, Depends(get_portal_sessions)]


async def get_portal_session(
    sessions: PortalSessionsDep,
    x_portal_token: Annotated[str | None, Header()] = None,
) -> PortalSession:
    session = sessions.get(x_portal_token)
    if session is None:
        raise HTTPException(status_code=401, detail="Portal session is missing or expired")
    return session


CurrentPortalSession = Annotated[PortalSession, Depends(get_portal_session)]


@router.post("/login", response_model=PortalLoginResponse)
async def login(
    payload: PortalLoginRequest, service: PortalServiceDep, sessions: PortalSessionsDep
) -> PortalLoginResponse:
    try:
        session = await service.login(payload.email, payload.cnpj)
    except PortalAuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return PortalLoginResponse(
        token=sessions.issue(session),
        client_id=session.client_id,
        razao_social=session.razao_social,
    )


@router.post("/tickets", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def submit_ticket(
    payload: PortalTicketRequest, service: PortalServiceDep, session: CurrentPortalSession
) -> TicketResponse:
    try:
        ticket = await service.submit_ticket(
            session, description=payload.description, scheduled_for=payload.scheduled_for
        )
    except TicketValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PortalError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except StoreWriteError as exc:
        raise HTTPException(status_code=502, detail="The ticket could not be saved") from exc
    return TicketResponse.model_validate(ticket)


@router.get("/tickets", response_model=list[PortalTicketResponse])
async def list_tickets(service: PortalServiceDep, session: CurrentPortalSession) -> list[PortalTicketResponse]:
    items = await service.list_tickets(session)
    return [
        PortalTicketResponse(
            ticket=TicketResponse.model_validate(item.ticket),
            history=[to_history_response(view) for view in item.history],
        )
        for item in items
    ]
