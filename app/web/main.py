from __future__ import annotations

import math

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.domain.catalog import initialize
from app.infrastructure.config import Settings, get_settings
from app.infrastructure.db import create_database_engine, create_session_factory, initialise_database
from app.infrastructure.exceptions import (
    BusinessLogicError,
    DigiAssistantError,
    ExportError,
    InvalidAnswerError,
    MultipleValidationError,
    NotFoundError,
    ProfileNotFoundError,
    RateLimitExceededError,
    ValidationError,
    log_error_details,
)
from app.infrastructure.logging import get_logger
from app.web.rate_limit import RateLimiter
from app.web.routes import api

logger = get_logger(__name__)

# Checked in order, the first matching class wins
STATUS_BY_ERROR: list[tuple[type[DigiAssistantError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (MultipleValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidAnswerError, status.HTTP_400_BAD_REQUEST),
    (ExportError, status.HTTP_400_BAD_REQUEST),
    (ProfileNotFoundError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BusinessLogicError, status.HTTP_409_CONFLICT),
    (RateLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
]


def status_for(exc: DigiAssistantError) -> int:
    for error_class, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_application_error(request: Request, exc: DigiAssistantError) -> JSONResponse:
    status_code = status_for(exc)
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after)))}
    if status_code >= 500:
        logger.error(
            f"Unhandled application error on {request.url.path}",
            extra=log_error_details(exc, {"path": request.url.path}),
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.user_message, "error": type(exc).__name__},
        headers=headers,
    )


def create_application(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=settings.security.cors_methods,
        allow_headers=["*"],
    )

    # Catalogs are validated once; a broken catalog stops startup here
    app.state.catalogs = initialize(settings.catalog)

    engine = create_database_engine(settings.database)
    initialise_database(engine)
    app.state.session_factory = create_session_factory(engine)

    if settings.security.rate_limit_enabled:
        window = settings.security.rate_limit_window_seconds
        app.state.rate_limiter = RateLimiter(
            settings.security.rate_limit_requests, window, name="standard"
        )
        app.state.strict_rate_limiter = RateLimiter(
            settings.security.rate_limit_strict_requests, window, name="strict"
        )
    else:
        app.state.rate_limiter = None
        app.state.strict_rate_limiter = None
    app.state.trust_forwarded_for = settings.security.trust_forwarded_for

    app.add_exception_handler(DigiAssistantError, handle_application_error)
    app.include_router(api.router, prefix=settings.app.api_prefix)

    logger.info(
        f"{settings.app.title} {settings.app.version} ready "
        f"({settings.app.environment}, {len(app.state.catalogs.questions)} questions)"
    )
    return app


app = create_application()
