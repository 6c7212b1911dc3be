"""
FastAPI application for the UrbanFix issue service.

Run with:
    uvicorn backend.app.main:app
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from urbanfix import __version__
from urbanfix.config import get_settings
from urbanfix.db import db
from urbanfix.logging import RequestLoggingMiddleware, configure_logging, get_logger

from .error_handlers import register_exception_handlers
from .middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from .routers import health as health_router
from .routers import issues as issues_router

settings = get_settings()
configure_logging()
logger = get_logger("api")


def _add_middleware(app: FastAPI) -> None:
    # Last added runs first: request id is bound before anything logs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, version=__version__, debug=settings.debug)

    _add_middleware(app)
    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        logger.info("app_startup", app_name=settings.app_name, version=__version__)
        db.initialize(settings.database_url)
        db.wait_until_ready(max_retries=3, retry_delay=2.0)
        if settings.auto_create_tables:
            db.create_all_tables()
            logger.info("database_tables_ensured")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("app_shutdown")

    app.include_router(health_router.router)
    app.include_router(issues_router.router)

    return app


app = create_app()
