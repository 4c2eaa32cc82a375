from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from starlette.applications import Starlette

from ..config import Settings, load_settings
from ..core.utils import Clock
from ..database.db import SessionManager, build_engine
from ..logging_config import setup_logging
from ..sync import SyncDispatcher, build_dispatcher
from .methods import routes


def create_app(
    settings: Optional[Settings] = None,
    session_manager: Optional[SessionManager] = None,
    clock: Optional[Clock] = None,
    sync: Optional[SyncDispatcher] = None,
) -> Starlette:
    if settings is None:
        settings = load_settings()
    setup_logging(settings.log_level, sql_echo=settings.sql_echo)

    if session_manager is None:
        session_manager = SessionManager(build_engine(settings.database_url))
    if sync is None:
        sync = build_dispatcher(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        app.state.sync.shutdown()
        app.state.session_manager.engine.dispose()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.settings = settings
    app.state.session_manager = session_manager
    app.state.clock = clock or Clock()
    app.state.sync = sync
    return app
