from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine

from notifyhub.application.use_cases.notifications import build_notification_orchestrator
from notifyhub.config import Settings, get_settings
from notifyhub.infrastructure import database
from notifyhub.infrastructure.notifications import NotificationConnectionManager
from notifyhub.interfaces.api.routes import register_routes


def _build_lifespan(
    engine: Engine,
    settings: Settings,
    email_lookup: Callable[[str], str | None] | None,
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the schema and the notification services, release them on exit."""

        database.initialize_database(engine)
        manager = NotificationConnectionManager()
        executor = ThreadPoolExecutor(
            max_workers=settings.dispatch_max_workers,
            thread_name_prefix="notification-dispatch",
        )
        app.state.notification_manager = manager
        app.state.notification_orchestrator = build_notification_orchestrator(
            manager,
            settings=settings,
            session_factory=app.state.session_factory,
            email_lookup=email_lookup,
            executor=executor,
        )
        yield
        executor.shutdown(wait=True)
        engine.dispose()

    return lifespan


def create_app(
    *,
    engine: Engine | None = None,
    settings: Settings | None = None,
    email_lookup: Callable[[str], str | None] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Producers inside the process reach the orchestrator through
    ``app.state.notification_orchestrator`` once the lifespan has started.
    """

    settings = settings or get_settings()
    if engine is None:
        engine = database.engine
        session_factory = database.SessionLocal
    else:
        session_factory = database.build_session_factory(engine)

    app = FastAPI(lifespan=_build_lifespan(engine, settings, email_lookup))
    app.state.session_factory = session_factory

    if settings.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_routes(app)
    return app


app = create_app()
