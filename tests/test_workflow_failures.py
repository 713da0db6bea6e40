from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from workorders.core.cache import QueryCache
from workorders.identity.resolver import StaticActorProvider
from workorders.metrics import MetricsRegistry
from workorders.tickets.errors import AuthResolutionError, StoreWriteError, TicketValidationError
from workorders.tickets.state import TicketStatus
from workorders.tickets.workflow import TicketWorkflow


class FailingTransaction:
    async def __aenter__(self):
        raise StoreWriteError("connection reset")

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyRepository:
    def __init__(self):
        self.transaction = MagicMock(return_value=FailingTransaction())
        self.list_history = AsyncMock(return_value=[])


class ExplodingActor:
    async def resolve_actor_id(self):  # pragma: no cover - must not be called
        raise AssertionError("actor resolution should not run")


@pytest.fixture
def repository():
    return DummyRepository()


@pytest.fixture
def workflow(repository):
    return TicketWorkflow(repository, cache=QueryCache(), metrics=MetricsRegistry())


@pytest.mark.asyncio
async def test_unresolved_actor_never_opens_a_transaction(workflow, repository):
    operations = [
        workflow.change_status("t-1", TicketStatus.EM_ANDAMENTO, actor=StaticActorProvider(None)),
        workflow.assign_ticket("t-1", "user-1", actor=StaticActorProvider(None)),
        workflow.mark_delivered("e-1", "EQ000001", "t-1", TicketStatus.EM_ANDAMENTO, actor=StaticActorProvider(None)),
        workflow.add_progress_note("t-1", "note", TicketStatus.EM_ANDAMENTO, actor=StaticActorProvider(None)),
        workflow.mark_billed("t-1", actor=StaticActorProvider(None)),
    ]

    for operation in operations:
        outcome = await operation
        assert not outcome
        assert isinstance(outcome.error, AuthResolutionError)
        assert outcome.notification.description.startswith("Could not identify the current user")

    repository.transaction.assert_not_called()


@pytest.mark.asyncio
async def test_validation_runs_before_actor_resolution(workflow, repository):
    outcome = await workflow.change_status("t-1", TicketStatus.CANCELADO, "", actor=ExplodingActor())

    assert not outcome
    assert isinstance(outcome.error, TicketValidationError)
    repository.transaction.assert_not_called()


@pytest.mark.asyncio
async def test_blank_assignee_is_rejected_up_front(workflow, repository):
    outcome = await workflow.assign_ticket("t-1", "", actor=ExplodingActor())

    assert not outcome
    repository.transaction.assert_not_called()


@pytest.mark.asyncio
async def test_store_failure_becomes_failed_outcome(workflow, repository, caplog):
    cache = QueryCache()
    cache.set(("tickets", "all"), ["cached"])
    workflow = TicketWorkflow(repository, cache=cache, metrics=MetricsRegistry())

    with caplog.at_level("ERROR"):
        outcome = await workflow.add_progress_note(
            "t-1", "Parts ordered", TicketStatus.EM_ANDAMENTO, actor=StaticActorProvider("user-1")
        )

    assert not outcome
    assert isinstance(outcome.error, StoreWriteError)
    assert outcome.notification.title == "Failed to record progress"
    assert outcome.notification.description == "The change could not be saved."
    assert cache.get(("tickets", "all")) == ["cached"]
    assert any("add_progress_note on ticket t-1 failed" in record.getMessage() for record in caplog.records)
