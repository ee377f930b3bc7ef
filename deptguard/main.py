from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from deptguard.db.session import SessionLocal
from deptguard.db.init_db import init_db
from deptguard.db.sources import SqlMenuSource
from deptguard.logging_config import configure_app_logging
from deptguard.routers import admin_menus, admin_roles, health, me
from deptguard.security.errors import Conflict, NotFoundReference, OverlayValidationError, PermissionDenied
from deptguard.security.menu_compose import MenuComposer
from deptguard.settings import get_settings

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFoundReference, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (OverlayValidationError, 422),
)


def _register_error_handlers(app: FastAPI) -> None:
    for exc_type, code in _ERROR_STATUS:

        def handler(request: Request, exc: Exception, code: int = code) -> JSONResponse:
            return JSONResponse(status_code=code, content={"detail": str(exc)})

        app.add_exception_handler(exc_type, handler)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level, settings.sql_echo)
        logger.info("App startup beginning")

        init_db(settings.resolved_catalog_path())
        logger.info("Database initialized from catalog: %s", settings.resolved_catalog_path())

        # One composer per process: its department cache is invalidated by overlay writes.
        app.state.menu_composer = MenuComposer(SqlMenuSource(session_factory=SessionLocal))

        yield

    app = FastAPI(lifespan=lifespan)
    _register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(admin_menus.router)
    app.include_router(admin_roles.router)

    return app


app = create_app()
