"""
Centralized configuration management for the digital maturity assessment application.

Provides environment-specific configuration with validation, type safety,
and comprehensive settings management using Pydantic.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

SOURCE_DATA_DIR = Path(__file__).resolve().parents[1] / "source_data"


class DatabaseConfig(BaseSettings):
    """
    Database configuration settings.

    Handles both SQLite and MySQL configurations with validation
    and connection URL generation.

    Example:
        >>> db_config = DatabaseConfig(backend="sqlite", sqlite_path="./test.db")
        >>> print(db_config.get_connection_url())
        >>> # sqlite:///./test.db
    """

    backend: Literal["sqlite", "mysql"] = Field("sqlite", description="Database backend type")

    # SQLite settings
    sqlite_path: str | None = Field("./digiassistant.db", description="SQLite database file path")

    # MySQL settings
    mysql_host: str | None = Field("localhost", description="MySQL host")
    mysql_port: int | None = Field(3306, ge=1, le=65535, description="MySQL port")
    mysql_user: str | None = Field("root", description="MySQL username")
    mysql_password: str | None = Field("", description="MySQL password")
    mysql_database: str | None = Field("digiassistant", description="MySQL database name")
    mysql_charset: str = Field("utf8mb4", description="MySQL character set")

    # Connection settings
    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    pool_recycle: int = Field(3600, ge=60, description="Connection pool recycle time (seconds)")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Ensure the SQLite file has a .db suffix; in-memory databases pass through."""
        if v and v != ":memory:":
            path = Path(v)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    @model_validator(mode="after")
    def validate_mysql_config(self):
        """Validate MySQL configuration completeness."""
        if self.backend == "mysql":
            missing = []
            if not self.mysql_host:
                missing.append("mysql_host")
            if not self.mysql_user:
                missing.append("mysql_user")
            if not self.mysql_database:
                missing.append("mysql_database")
            if missing:
                raise ValueError(f"MySQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        """
        Generate database connection URL.

        Returns:
            Database connection URL string

        Raises:
            ValueError: If backend is unsupported or configuration is invalid
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        elif self.backend == "mysql":
            password_part = f":{self.mysql_password}" if self.mysql_password else ""
            return (
                f"mysql+pymysql://{self.mysql_user}{password_part}@{self.mysql_host}:"
                f"{self.mysql_port}/{self.mysql_database}?charset={self.mysql_charset}"
            )
        else:
            raise ValueError(f"Unsupported database backend: {self.backend}")

    def get_engine_options(self) -> dict[str, Any]:
        """Get SQLAlchemy engine options."""
        options: dict[str, Any] = {
            "echo": self.echo,
            "future": True,
            "pool_pre_ping": self.pool_pre_ping,
        }
        if self.backend == "mysql":
            options["pool_recycle"] = self.pool_recycle
        return options


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Manages logging levels, output formats, and file destinations
    with environment-specific defaults.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/app.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    def get_file_handler_config(self) -> dict[str, Any] | None:
        """Get file handler configuration if file logging is enabled."""
        if not self.file_path:
            return None

        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class SecurityConfig(BaseSettings):
    """
    Security configuration settings.

    Input validation limits, rate limiting budgets and CORS settings
    for the HTTP layer.

    Example:
        >>> sec_config = SecurityConfig()
        >>> print(sec_config.rate_limit_requests)
    """

    # Input validation
    max_input_length: int = Field(255, ge=10, description="Maximum free-text input length")
    max_identifier_length: int = Field(100, ge=10, description="Maximum identifier length")

    # Rate limiting
    rate_limit_enabled: bool = Field(True, description="Enable request rate limiting")
    rate_limit_requests: int = Field(100, ge=1, description="Standard requests per window")
    rate_limit_strict_requests: int = Field(20, ge=1, description="Strict requests per window")
    rate_limit_window_seconds: int = Field(60, ge=1, description="Rate limit window (seconds)")
    trust_forwarded_for: bool = Field(
        False, description="Key rate limits on X-Forwarded-For (only behind a trusted proxy)"
    )

    # CORS settings
    cors_origins: list[str] = Field(
        ["http://localhost:5173"], description="Allowed CORS origins"
    )
    cors_methods: list[str] = Field(
        ["GET", "POST", "PUT", "DELETE"], description="Allowed CORS methods"
    )

    model_config = {"env_prefix": "SECURITY_", "case_sensitive": False}


class CatalogConfig(BaseSettings):
    """
    Question bank and dimension catalog settings.

    Points at the static catalog files and names the intro questions the
    workflow treats specially.

    Example:
        >>> catalog_config = CatalogConfig()
        >>> print(catalog_config.entry_question_id)
        >>> # intro_company_size
    """

    dimensions_path: str = Field(
        str(SOURCE_DATA_DIR / "dimensions.json"), description="Dimension catalog file"
    )
    questions_path: str = Field(
        str(SOURCE_DATA_DIR / "questions.json"), description="Question bank file"
    )
    entry_question_id: str = Field("intro_company_size", description="First question id")
    company_size_question_id: str = Field(
        "intro_company_size", description="Intro question filling company size"
    )
    sector_question_id: str = Field("intro_sector", description="Intro question filling sector")
    seconds_per_question: int = Field(20, ge=1, description="Average answer time (seconds)")
    max_pillar_score: int = Field(9, ge=1, description="Point cap for a single pillar")
    pillars_per_dimension: int = Field(4, ge=1, description="Pillars expected per dimension")
    dimension_count: int = Field(6, ge=1, description="Dimensions expected in the catalog")

    model_config = {"env_prefix": "CATALOG_", "case_sensitive": False}

    @field_validator("dimensions_path", "questions_path")
    def validate_catalog_path(cls, v):
        """Catalog files must be JSON documents."""
        if not v.endswith(".json"):
            raise ValueError("Catalog files must be JSON documents")
        return v


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    # Environment
    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    title: str = Field("DigiAssistant API", description="Application title")
    version: str = Field("1.0.0", description="Application version")
    api_prefix: str = Field("/api/v1", description="Prefix of every API route")

    # Feature flags
    enable_data_export: bool = Field(True, description="Enable result export endpoints")
    enable_recalculation: bool = Field(True, description="Enable forced score recalculation")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled in development."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections
    with lazy loading and caching.

    Example:
        >>> settings = get_settings()
        >>> print(settings.database.get_connection_url())
        >>> print(settings.catalog.entry_question_id)
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._database: DatabaseConfig | None = None
        self._logging: LoggingConfig | None = None
        self._security: SecurityConfig | None = None
        self._catalog: CatalogConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        """Get database configuration."""
        if self._database is None:
            self._database = DatabaseConfig()
        return self._database

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        if self._logging is None:
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=level)
        return self._logging

    @property
    def security(self) -> SecurityConfig:
        """Get security configuration."""
        if self._security is None:
            self._security = SecurityConfig()
        return self._security

    @property
    def catalog(self) -> CatalogConfig:
        """Get catalog configuration."""
        if self._catalog is None:
            self._catalog = CatalogConfig()
        return self._catalog

    def is_testing(self) -> bool:
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "database_backend": self.database.backend,
            "logging_level": self.logging.level,
            "features": {
                "data_export": self.app.enable_data_export,
                "recalculation": self.app.enable_recalculation,
                "rate_limiting": self.security.rate_limit_enabled,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON configuration file.

    Each top-level section maps onto an environment prefix, e.g.
    ``{"catalog": {"seconds_per_question": 30}}`` sets ``CATALOG_SECONDS_PER_QUESTION``.

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ValueError: If file format is unsupported
    """
    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    with open(config_path, encoding="utf-8") as f:
        config_data = json.load(f)

    prefixes = {"database": "DB", "logging": "LOG"}
    for section, values in config_data.items():
        if isinstance(values, dict):
            prefix = prefixes.get(section, section.upper())
            for key, value in values.items():
                os.environ[f"{prefix}_{key.upper()}"] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Keys are environment variable names in lower case, section prefix first.

    Example:
        >>> settings = override_settings(
        ...     app_environment="testing",
        ...     db_sqlite_path=":memory:",
        ... )
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
