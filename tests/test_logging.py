import logging

import pytest

from workorders.core.cache import QueryCache
from workorders.core.logging import LogContextFilter, bind_log_context, log_context
from workorders.identity.resolver import StaticActorProvider
from workorders.metrics import MetricsRegistry
from workorders.tickets.repository import TicketRepository
from workorders.tickets.state import TicketStatus
from workorders.tickets.workflow import TicketWorkflow


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []
        self.addFilter(LogContextFilter())

    def emit(self, record):
        self.records.append(record)


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("workorders", logging.INFO, __file__, 1, message, None, None)


def test_filter_copies_bound_context_and_defaults_outside():
    context_filter = LogContextFilter()
    with log_context(operation="change_status"):
        bind_log_context(actor="user-1")
        inside = _record("inside")
        context_filter.filter(inside)
    outside = _record("outside")
    context_filter.filter(outside)

    assert (inside.operation, inside.actor) == ("change_status", "user-1")
    assert (outside.operation, outside.actor) == ("-", "-")


@pytest.mark.asyncio
async def test_workflow_records_carry_operation_and_actor(session_factory, seeded, now):
    ticket = await TicketRepository(session_factory).create_ticket(
        client_id=seeded.client_id,
        description="Phone line dead",
        scheduled_for=now,
        created_by=seeded.admin_id,
        status=TicketStatus.PENDENTE,
    )
    workflow = TicketWorkflow(TicketRepository(session_factory), cache=QueryCache(), metrics=MetricsRegistry())
    handler = RecordingHandler()
    logger = logging.getLogger("workorders.tickets.workflow")
    logger.addHandler(handler)
    previous_level = logger.level
    logger.setLevel(logging.INFO)
    try:
        await workflow.change_status(ticket.id, TicketStatus.EM_ANDAMENTO, actor=StaticActorProvider(seeded.tech_id))
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    assert handler.records
    assert all(record.operation == "change_status" for record in handler.records)
    assert handler.records[-1].actor == seeded.tech_id
