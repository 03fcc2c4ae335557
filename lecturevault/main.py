"""
FastAPI application factory
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from lecturevault.config import Settings, get_settings
from lecturevault.domain.errors import (
    ConstraintViolation, FieldError, InvariantViolation, MalformedRule, NotFound,
    SingletonViolation, StoreError, UnknownEntity,
)
from lecturevault.api.v1 import categories, events, recordings, settings as settings_api

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFound: 404,
    ConstraintViolation: 422,
    FieldError: 422,
    MalformedRule: 422,
    UnknownEntity: 422,
    SingletonViolation: 409,
    InvariantViolation: 409,
}


def status_for(exc: StoreError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 400


def create_app(store=None, settings: Settings | None = None) -> FastAPI:
    """
    Application factory

    Args:
        store: an open LocalStore; built from settings at startup when omitted
        settings: overrides get_settings()
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from lecturevault.application.scheduler import shutdown_scheduler, start_scheduler
        from lecturevault.application.store import build_store

        if getattr(app.state, "store", None) is None:
            app.state.store = build_store(settings)
        if settings.SCHEDULER_ENABLED:
            start_scheduler(app.state.store)
        try:
            yield
        finally:
            if settings.SCHEDULER_ENABLED:
                shutdown_scheduler()

    app = FastAPI(
        title="LectureVault",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.store = store

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        status = status_for(exc)
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    app.include_router(events.router)
    app.include_router(categories.router)
    app.include_router(recordings.router)
    app.include_router(settings_api.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready(request: Request):
        """Readiness check endpoint (store reachable)"""
        request.app.state.store.version()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lecturevault.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
