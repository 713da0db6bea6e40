from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from workorders.clients.portal import PortalService, PortalSessionStore
from workorders.clients.service import ClientService
from workorders.equipment.service import EquipmentService
from workorders.tickets.service import TicketService
from workorders.tickets.workflow import TicketWorkflow
from workorders.users.repository import SystemUserRepository


def _from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _from_state(request, "ticket_service", "Ticket service")


async def get_ticket_workflow(request: Request) -> TicketWorkflow:
    return _from_state(request, "ticket_workflow", "Ticket workflow")


async def get_client_service(request: Request) -> ClientService:
    return _from_state(request, "client_service", "Client service")


async def get_equipment_service(request: Request) -> EquipmentService:
    return _from_state(request, "equipment_service", "Equipment service")


async def get_user_repository(request: Request) -> SystemUserRepository:
    return _from_state(request, "user_repository", "User directory")


async def get_portal_service(request: Request) -> PortalService:
    return _from_state(request, "portal_service", "Client portal")


async def get_portal_sessions(request: Request) -> PortalSessionStore:
    return _from_state(request, "portal_sessions", "Client portal")
