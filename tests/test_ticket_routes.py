from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from workorders.dependencies import auth as auth_deps
from workorders.dependencies import services as service_deps
from workorders.identity.resolver import StaticActorProvider
from workorders.main import create_app
from workorders.tickets.errors import AuthResolutionError, StoreWriteError, TicketNotFoundError, TicketValidationError
from workorders.tickets.models import Ticket, TicketFilter, TicketHistoryEntry, TicketHistoryView
from workorders.tickets.state import HistoryAction, TicketStatus
from workorders.tickets.workflow import Notification, NotificationLevel, WorkflowOutcome
from workorders.users.models import Role, SystemUser

ADMIN = SystemUser("user-admin", "Ana Admin", "ana@example.com", Role.ADMIN, True)
TECH = SystemUser("user-tech", "Bruno Tech", "bruno@example.com", Role.USER, True)


def _make_ticket(*, status: TicketStatus = TicketStatus.PENDENTE, assigned_to: str | None = None) -> Ticket:
    now = datetime.now(timezone.utc)
    return Ticket(
        id=str(uuid4()),
        codigo="TK000001",
        client_id="client-acme",
        description="Printer jams",
        scheduled_for=now,
        status=status,
        faturado=False,
        faturado_at=None,
        assigned_to=assigned_to,
        created_by=ADMIN.id,
        created_at=now,
        updated_at=now,
        client_name="Acme Industria Ltda",
        assigned_name="Bruno Tech" if assigned_to else None,
    )


def _make_entry(ticket_id: str) -> TicketHistoryEntry:
    return TicketHistoryEntry(
        id=str(uuid4()),
        ticket_id=ticket_id,
        sequence=1,
        action_type=HistoryAction.STATUS_CHANGE,
        status=TicketStatus.EM_ANDAMENTO,
        previous_status=TicketStatus.PENDENTE,
        reason=None,
        created_by=TECH.id,
        created_at=datetime.now(timezone.utc),
    )


def _failed(error) -> WorkflowOutcome:
    return WorkflowOutcome(
        operation="change_status",
        ok=False,
        notification=Notification(NotificationLevel.ERROR, "Failed to change status", str(error)),
        error=error,
    )


@pytest.fixture
def api():
    app = create_app()
    service = AsyncMock()
    workflow = AsyncMock()
    state = {"user": TECH}

    async def override_service():
        return service

    async def override_workflow():
        return workflow

    app.dependency_overrides[service_deps.get_ticket_service] = override_service
    app.dependency_overrides[service_deps.get_ticket_workflow] = override_workflow
    app.dependency_overrides[auth_deps.get_current_user] = lambda: state["user"]
    app.dependency_overrides[auth_deps.get_actor_resolver] = lambda: StaticActorProvider(state["user"].id)

    client = TestClient(app)
    try:
        yield client, service, workflow, state
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_records_current_user_as_creator(api):
    client, service, _, _ = api
    ticket = _make_ticket()
    service.create_ticket = AsyncMock(return_value=ticket)

    response = client.post(
        "/tickets",
        json={"client_id": "client-acme", "description": "Printer jams", "scheduled_for": "2024-03-02T09:00:00Z"},
    )

    assert response.status_code == 201
    assert response.json()["codigo"] == "TK000001"
    assert service.create_ticket.await_args.kwargs["created_by"] == TECH.id


def test_non_admin_listing_is_scoped_to_the_viewer(api):
    client, service, _, state = api
    service.list_tickets = AsyncMock(return_value=[_make_ticket(status=TicketStatus.EM_ANDAMENTO)])

    response = client.get("/tickets", params={"status": "EM_ANDAMENTO", "search": "acme"})

    assert response.status_code == 200
    assert response.json()[0]["status"] == "EM_ANDAMENTO"
    service.list_tickets.assert_awaited_with(
        TicketFilter(search="acme", status=TicketStatus.EM_ANDAMENTO, viewer_id=TECH.id)
    )

    state["user"] = ADMIN
    client.get("/tickets")
    service.list_tickets.assert_awaited_with(TicketFilter())


def test_change_status_returns_outcome(api):
    client, _, workflow, _ = api
    ticket = _make_ticket(status=TicketStatus.EM_ANDAMENTO)
    workflow.change_status = AsyncMock(
        return_value=WorkflowOutcome(
            operation="change_status",
            ok=True,
            notification=Notification(NotificationLevel.SUCCESS, "Status updated", "Ticket is now EM_ANDAMENTO"),
            ticket=ticket,
            entry=_make_entry(ticket.id),
        )
    )

    response = client.post(f"/tickets/{ticket.id}/status", json={"status": "EM_ANDAMENTO"})

    assert response.status_code == 200
    body = response.json()
    assert body["notification"]["level"] == "success"
    assert body["ticket"]["status"] == "EM_ANDAMENTO"
    assert body["entry"]["previous_status"] == "PENDENTE"
    assert workflow.change_status.await_args.args == (ticket.id, TicketStatus.EM_ANDAMENTO, None)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (AuthResolutionError("Could not identify the current user"), 401),
        (TicketNotFoundError("Ticket t-1 not found"), 404),
        (TicketValidationError("A reason is required"), 422),
        (StoreWriteError("connection reset"), 502),
    ],
)
def test_failed_outcomes_map_to_http_errors(api, error, expected):
    client, _, workflow, _ = api
    workflow.change_status = AsyncMock(return_value=_failed(error))

    response = client.post("/tickets/t-1/status", json={"status": "CANCELADO"})

    assert response.status_code == expected
    assert response.json()["detail"] == str(error)


def test_unknown_status_is_rejected_before_the_workflow(api):
    client, _, workflow, _ = api
    workflow.change_status = AsyncMock()

    response = client.post("/tickets/t-1/status", json={"status": "FATURADO"})

    assert response.status_code == 422
    workflow.change_status.assert_not_awaited()


def test_progress_note_uses_the_ticket_status(api):
    client, service, workflow, _ = api
    ticket = _make_ticket(status=TicketStatus.EM_ANDAMENTO)
    service.get_ticket = AsyncMock(return_value=ticket)
    workflow.add_progress_note = AsyncMock(
        return_value=WorkflowOutcome(
            operation="add_progress_note",
            ok=True,
            notification=Notification(NotificationLevel.SUCCESS, "Progress recorded", "Note added"),
        )
    )

    response = client.post(f"/tickets/{ticket.id}/progress-notes", json={"note": "Waiting for parts"})

    assert response.status_code == 201
    assert workflow.add_progress_note.await_args.args == (ticket.id, "Waiting for parts", TicketStatus.EM_ANDAMENTO)


def test_delivery_of_equipment_outside_the_ticket_is_not_found(api):
    client, service, workflow, _ = api
    ticket = _make_ticket()
    service.get_ticket = AsyncMock(return_value=ticket)
    workflow.mark_delivered = AsyncMock()

    response = client.post(f"/tickets/{ticket.id}/equipment/eq-1/delivery")

    assert response.status_code == 404
    workflow.mark_delivered.assert_not_awaited()


def test_billing_requires_admin(api):
    client, _, workflow, state = api
    workflow.mark_billed = AsyncMock(
        return_value=WorkflowOutcome(
            operation="mark_billed",
            ok=True,
            notification=Notification(NotificationLevel.SUCCESS, "Ticket billed", "Ticket billed"),
        )
    )

    assert client.post("/tickets/t-1/billing").status_code == 403

    state["user"] = ADMIN
    assert client.post("/tickets/t-1/billing").status_code == 200
    workflow.mark_billed.assert_awaited_once()


def test_history_endpoint_returns_names(api):
    client, _, workflow, _ = api
    entry = _make_entry("t-1")
    workflow.list_history = AsyncMock(return_value=[TicketHistoryView(entry=entry, created_by_name="Bruno Tech")])

    response = client.get("/tickets/t-1/history")

    assert response.status_code == 200
    assert response.json()[0]["created_by_name"] == "Bruno Tech"
    assert response.json()[0]["action_type"] == "STATUS_CHANGE"


def test_stats_endpoint_counts_assigned_tickets(api):
    client, service, _, state = api
    state["user"] = ADMIN
    service.list_tickets = AsyncMock(
        return_value=[
            _make_ticket(assigned_to=TECH.id),
            _make_ticket(status=TicketStatus.EM_ANDAMENTO, assigned_to=TECH.id),
            _make_ticket(),
        ]
    )

    response = client.get("/tickets/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["users"] == [
        {
            "user_id": TECH.id,
            "name": "Bruno Tech",
            "total": 2,
            "pending": 1,
            "in_progress": 1,
            "completed": 0,
            "canceled": 0,
        }
    ]
    assert body["status_counts"]["PENDENTE"] == 2
