import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from helpdesk.api.routes import dashboard, entities, ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.db import create_engine, create_session_factory, ensure_schema
from helpdesk.entities import build_entity_repositories
from helpdesk.errors import HelpdeskError
from helpdesk.tickets import AuditRecorder, DashboardService, TicketRepository, TicketService

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, settings: Settings, session_factory) -> None:
    """Wire repositories and services onto ``app.state``."""

    audit = AuditRecorder(session_factory, default_performer=settings.default_performer)
    repository = TicketRepository(session_factory, number_prefix=settings.ticket_number_prefix)
    app.state.ticket_service = TicketService(
        repository,
        audit,
        default_performer=settings.default_performer,
    )
    app.state.dashboard_service = DashboardService(
        session_factory,
        reporting_timezone=settings.reporting_timezone,
    )
    app.state.entity_repositories = build_entity_repositories(session_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings: Settings = app.state.settings
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    engine = create_engine(settings.database_url, echo=settings.database_echo)
    app.state.db_engine = engine
    try:
        if settings.create_schema_on_startup:
            await ensure_schema(engine)
        build_services(app, settings, create_session_factory(engine))
        logger.info("Helpdesk service ready at %s", settings.service_root)
        yield
    finally:
        await engine.dispose()
        shutdown_tracer(tracer_provider)


async def handle_helpdesk_error(request: Request, exc: HelpdeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(HelpdeskError, handle_helpdesk_error)
    root = settings.service_root.rstrip("/")
    app.include_router(ping.router, prefix=root)
    app.include_router(tickets.router, prefix=root)
    app.include_router(dashboard.router, prefix=root)
    for router in entities.routers:
        app.include_router(router, prefix=root)
    return app


app = create_app()
