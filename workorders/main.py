import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from workorders.api.routes import clients, equipment, metrics, ping, portal, tickets, users
from workorders.clients.portal import PortalService, PortalSessionStore
from workorders.clients.repository import ClientRepository
from workorders.clients.service import ClientService
from workorders.core.cache import QueryCache
from workorders.core.config import get_settings
from workorders.core.db import create_engine_and_sessions, ensure_schema
from workorders.core.logging import configure_logging, init_tracer, shutdown_tracer
from workorders.equipment.repository import EquipmentRepository
from workorders.equipment.service import EquipmentService
from workorders.tickets.repository import TicketRepository
from workorders.tickets.service import TicketService
from workorders.tickets.state import TicketStateMachine
from workorders.tickets.workflow import TicketWorkflow
from workorders.users.repository import SystemUserRepository


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider

    engine, session_factory = create_engine_and_sessions(settings.postgres_dsn)
    if settings.auto_create_schema:
        await ensure_schema(engine)

    cache: QueryCache = app.state.query_cache
    ticket_repository = TicketRepository(session_factory)
    user_repository = SystemUserRepository(session_factory)
    ticket_service = TicketService(ticket_repository, cache=cache)

    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    app.state.user_repository = user_repository
    app.state.ticket_service = ticket_service
    app.state.ticket_workflow = TicketWorkflow(
        ticket_repository,
        cache=cache,
        state_machine=TicketStateMachine(settings.reason_required_statuses),
    )
    app.state.client_service = ClientService(ClientRepository(session_factory), cache=cache)
    app.state.equipment_service = EquipmentService(EquipmentRepository(session_factory), cache=cache)
    app.state.portal_service = PortalService(
        clients=ClientRepository(session_factory),
        tickets=ticket_service,
        ticket_repository=ticket_repository,
        users=user_repository,
    )
    app.state.portal_sessions = PortalSessionStore(ttl_seconds=settings.portal_session_ttl_seconds)
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        cache.clear()
        await engine.dispose()
        shutdown_tracer(tracer_provider)
        logging.getLogger(__name__).info("%s stopped", settings.app_name)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.query_cache = QueryCache(
        ttl_seconds=settings.query_cache_ttl_seconds, max_entries=settings.query_cache_max_entries
    )
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    app.include_router(clients.router)
    app.include_router(equipment.router)
    app.include_router(users.router)
    app.include_router(portal.router)
    return app


app = create_app()
