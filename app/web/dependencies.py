from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from app.domain.catalog import Catalogs
from app.infrastructure.config import get_settings
from app.infrastructure.db import create_database_engine, create_session_factory
from app.web.rate_limit import RateLimiter


def get_session_factory(request: Request) -> sessionmaker[Session]:
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        engine = create_database_engine(get_settings().database)
        session_factory = create_session_factory(engine)
        request.app.state.session_factory = session_factory
    return session_factory


def get_db_session(request: Request) -> Generator[Session, None, None]:
    session_factory = get_session_factory(request)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def get_catalogs(request: Request) -> Catalogs:
    return request.app.state.catalogs


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and getattr(request.app.state, "trust_forwarded_for", False):
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _apply_limiter(request: Request, limiter: RateLimiter | None) -> None:
    if limiter is not None:
        limiter.check(client_key(request))


def rate_limit(request: Request) -> None:
    _apply_limiter(request, getattr(request.app.state, "rate_limiter", None))


def strict_rate_limit(request: Request) -> None:
    _apply_limiter(request, getattr(request.app.state, "strict_rate_limiter", None))
