"""
Database connection and session management with centralized configuration.

This module provides database connectivity using the centralized configuration
system, with proper error handling and logging integration.
"""

from __future__ import annotations

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DatabaseConfig, get_settings
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper configuration.

    SQLite connections are shared across threads (FastAPI runs sync routes in a
    threadpool); an in-memory database is pinned to a single connection so every
    session sees the same data.

    Args:
        config: Database configuration (uses default if None)

    Returns:
        Configured SQLAlchemy engine

    Example:
        >>> engine = create_database_engine(DatabaseConfig(sqlite_path=":memory:"))
    """
    if config is None:
        config = get_settings().database

    connection_url = config.get_connection_url()
    engine_options = config.get_engine_options()
    if config.backend == "sqlite":
        engine_options["connect_args"] = {"check_same_thread": False}
        if config.sqlite_path == ":memory:":
            engine_options["poolclass"] = StaticPool

    logger.info(f"Creating database engine for {config.backend} backend")
    logger.debug(f"Connection URL: {connection_url.split('@')[-1]}")  # Hide credentials in logs

    try:
        engine = create_engine(connection_url, **engine_options)
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {str(e)}")
        raise


def create_session_factory(engine: Engine | None = None) -> sessionmaker:
    """
    Create SQLAlchemy session factory.

    Example:
        >>> SessionLocal = create_session_factory()
        >>> with SessionLocal() as session:
        ...     pass
    """
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


def initialise_database(engine: Engine) -> bool:
    """
    Ensure all ORM tables exist.

    Returns:
        True if every table already existed before this call, False if at least one table
        needed to be created.
    """
    existing_tables = set(inspect(engine).get_table_names())
    expected_tables = [table.name for table in Base.metadata.sorted_tables]
    already_exists = all(table in existing_tables for table in expected_tables)
    Base.metadata.create_all(engine)
    if not already_exists:
        logger.info("Created missing tables: %s", ", ".join(expected_tables))
    return already_exists


def get_database_url() -> str:
    """
    Get database connection URL from configuration.

    Example:
        >>> url = get_database_url()
        >>> print(url)  # sqlite:///./digiassistant.db
    """
    return get_settings().database.get_connection_url()


def is_database_configured() -> bool:
    """Check if database is properly configured."""
    try:
        get_settings().database.get_connection_url()
        return True
    except ValueError as e:
        logger.warning(f"Database configuration invalid: {str(e)}")
        return False
