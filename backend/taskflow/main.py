"""FastAPI application."""
import logging
from typing import Callable, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import active_user_token_verifier
from .config import settings
from .database import SessionLocal
from .deps import get_registry
from .domain_errors import DomainError
from .problem_details import domain_error_handler, http_exception_handler
from .realtime.delivery import DeliveryLayer
from .realtime.registry import ConnectionRegistry
from .routers import directory, notifications, realtime, tasks
from .services.notification_fanout import NotificationFanout

logger = logging.getLogger(__name__)


def _check_production_settings() -> None:
    """Fail closed on insecure CORS configuration in production."""
    if settings.ENV.lower() != "production":
        return
    if not settings.cors_origins:
        raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
    if any(origin.strip() == "*" for origin in settings.cors_origins):
        raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
    if any(
        origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1")
        for origin in settings.cors_origins
    ):
        raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")


def create_app(session_factory: Optional[Callable[[], Session]] = None) -> FastAPI:
    """Build the API; ``session_factory`` is the one background fan-out opens sessions with."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _check_production_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Multi-tenant task tracking with real-time notifications",
    )

    session_factory = session_factory or SessionLocal
    registry = ConnectionRegistry()
    delivery = DeliveryLayer(registry, verify_token=active_user_token_verifier(session_factory))
    app.state.registry = registry
    app.state.delivery = delivery
    app.state.fanout = NotificationFanout(session_factory=session_factory, delivery=delivery)

    cors_headers = ["Authorization", "Content-Type"]
    if settings.ENV.lower() != "production":
        cors_headers = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=cors_headers,
    )
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(tasks.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")
    app.include_router(directory.router, prefix="/api/v1")
    app.include_router(realtime.router, prefix="/api/v1")

    @app.get("/api/v1/system/health")
    def health_check(registry: ConnectionRegistry = Depends(get_registry)):
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": "1.0.0",
            "connections": len(registry),
        }

    @app.get("/")
    def root():
        """Root endpoint."""
        return {
            "message": f"{settings.APP_NAME} API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)
    return app


app = create_app()


def run() -> None:
    """Serve ``app`` with uvicorn (the `taskflow-api` script)."""
    uvicorn.run("taskflow.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
