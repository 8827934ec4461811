from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from adatickets.api.routes import metrics, notifications, ping, platforms, tickets, users
from adatickets.core.config import get_settings
from adatickets.core.logging import configure_logging, init_tracer, shutdown_tracer
from adatickets.middleware import RBACMiddleware
from adatickets.tickets.repository import TicketRepository
from adatickets.tickets.service import TicketService


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider

    db_engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), echo=settings.database_echo)
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    repository = TicketRepository(session_factory, engine=db_engine)
    service = TicketService(repository)
    try:
        if settings.create_schema_on_startup:
            await service.ensure_schema()
        app.state.db_engine = db_engine
        app.state.ticket_service = service
        logger.info("%s started in %s", settings.app_name, settings.environment)
        yield
    finally:
        app.state.ticket_service = None
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(RBACMiddleware)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    app.include_router(notifications.router)
    app.include_router(platforms.router)
    app.include_router(users.router)
    return app


app = create_app()
