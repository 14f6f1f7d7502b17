"""
Tests for the ambient stack: error handling, logging, configuration and the
request rate limiter.
"""

import json
import logging
import sys

import pytest
from sqlalchemy.exc import IntegrityError as SQLIntegrityError
from sqlalchemy.exc import OperationalError

from app.infrastructure.config import (
    CatalogConfig,
    DatabaseConfig,
    LoggingConfig,
    get_settings,
    load_settings_from_file,
    reset_settings,
)
from app.infrastructure.db import is_database_configured
from app.infrastructure.exceptions import (
    AssessmentNotFoundError,
    AssessmentStateError,
    ConnectionError,
    IntegrityError,
    RateLimitExceededError,
    ValidationError,
    create_user_friendly_error_message,
    handle_database_error,
    log_error_details,
)
from app.infrastructure.logging import (
    LogContext,
    StructuredFormatter,
    build_logging_config,
    configure_test_logging,
    context_filter,
    get_logger,
    log_operation,
    setup_logging,
)
from app.web.main import status_for
from app.web.rate_limit import RateLimiter


class TestErrorHandling:
    """Exception hierarchy, user messages and HTTP status mapping."""

    def test_validation_error_creation(self):
        error = ValidationError("company_name", "too long", "x" * 200)

        assert error.field == "company_name"
        assert "too long" in str(error)
        assert error.user_message == "Invalid company name: too long"
        assert error.details["field"] == "company_name"

    def test_database_error_conversion(self):
        unique = SQLIntegrityError("stmt", {}, Exception("UNIQUE constraint failed"))
        assert isinstance(handle_database_error(unique, "save"), IntegrityError)
        assert "already exists" in handle_database_error(unique).user_message

        lost = OperationalError("stmt", {}, Exception("connection refused"))
        assert isinstance(handle_database_error(lost), ConnectionError)

    def test_state_error_messages(self):
        assert "completed" in AssessmentStateError("assess_1", "completed", "answer").user_message
        assert "abandoned" in AssessmentStateError("assess_1", "abandoned", "answer").user_message
        assert "not completed" in AssessmentStateError("assess_1", "in_progress", "view").user_message

    def test_user_friendly_error_messages(self):
        assert create_user_friendly_error_message(AssessmentNotFoundError("assess_1")).startswith(
            "The assessment could not be found"
        )
        assert "try again" in create_user_friendly_error_message(ValueError("boom")).lower()

    def test_log_error_details(self):
        details = log_error_details(AssessmentNotFoundError("assess_1"), {"operation": "load"})
        assert details["error_type"] == "AssessmentNotFoundError"
        assert details["context"] == {"operation": "load"}
        assert details["error_details"]["identifier"] == "assess_1"

    def test_status_mapping(self):
        assert status_for(ValidationError("answer", "bad")) == 400
        assert status_for(AssessmentNotFoundError("assess_1")) == 404
        assert status_for(AssessmentStateError("assess_1", "completed", "answer")) == 409
        assert status_for(RateLimitExceededError("1.2.3.4", 1, 60, 30.0)) == 429


class TestLogging:
    """Namespaced loggers, context propagation and structured output."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        context_filter.clear_context()
        yield
        context_filter.clear_context()
        configure_test_logging()

    def test_logger_namespace(self):
        assert get_logger("tests").name == "app.tests"
        assert get_logger("app.web.main").name == "app.web.main"

    def test_file_logging_is_structured(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        setup_logging(level="DEBUG", log_file=str(log_file), structured=True, enable_console=False)

        with LogContext(assessment_id="assess_1_abc"):
            get_logger("tests").info("Recorded answer")
        for handler in logging.getLogger("app").handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert entry["message"] == "Recorded answer"
        assert entry["logger"] == "app.tests"
        assert entry["assessment_id"] == "assess_1_abc"

    def test_logging_config_drives_handlers(self, tmp_path):
        quiet = build_logging_config(LoggingConfig(file_path=None, console_enabled=False))
        assert list(quiet["handlers"]) == ["null"]

        log_file = tmp_path / "digi.log"
        config = build_logging_config(
            LoggingConfig(
                level="ERROR",
                file_path=str(log_file),
                max_bytes=2048,
                backup_count=2,
                structured=False,
            )
        )
        assert config["handlers"]["console"]["formatter"] == "text"
        assert config["handlers"]["file"]["formatter"] == "structured"
        assert config["handlers"]["file"]["maxBytes"] == 2048
        assert config["handlers"]["file"]["backupCount"] == 2
        assert config["loggers"]["app"]["level"] == "ERROR"

    def test_operation_timing_is_recorded(self, tmp_path):
        log_file = tmp_path / "timed.log"
        setup_logging(level="DEBUG", log_file=str(log_file), structured=True, enable_console=False)

        @log_operation("score")
        def score():
            return 42

        assert score() == 42
        for handler in logging.getLogger("app").handlers:
            handler.flush()
        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        completed = [e for e in entries if e["message"].startswith("Completed score")]
        assert completed[0]["operation"] == "score"
        assert completed[0]["duration_ms"] >= 0

    def test_log_context_restores_previous(self):
        with LogContext(assessment_id="outer"):
            with LogContext(question_id="inner"):
                assert context_filter.context == {"assessment_id": "outer", "question_id": "inner"}
            assert context_filter.context == {"assessment_id": "outer"}
        assert context_filter.context == {}

    def test_structured_formatter_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "app.tests", logging.ERROR, __file__, 1, "failed", None, exc_info=sys.exc_info()
            )
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["exception"]["type"] == "RuntimeError"

    def test_log_operation_reraises(self, caplog):
        logger = logging.getLogger("tests.operations")

        @log_operation("explode", logger=logger)
        def explode():
            raise ValueError("nope")

        with caplog.at_level(logging.ERROR, logger="tests.operations"):
            with pytest.raises(ValueError):
                explode()
        assert "Failed explode: nope" in caplog.text


class TestConfiguration:
    """Settings sections, validation and overrides."""

    @pytest.fixture(autouse=True)
    def fresh_settings(self):
        reset_settings()
        yield
        reset_settings()

    def test_database_config_sqlite(self):
        config = DatabaseConfig(backend="sqlite", sqlite_path="./assessments")
        assert config.get_connection_url() == "sqlite:///assessments.db"
        assert DatabaseConfig(sqlite_path=":memory:").get_connection_url() == "sqlite:///:memory:"

    def test_database_config_mysql(self):
        config = DatabaseConfig(
            backend="mysql",
            mysql_host="db",
            mysql_user="digi",
            mysql_password="secret",
            mysql_database="assessments",
        )
        url = config.get_connection_url()
        assert url.startswith("mysql+pymysql://digi:secret@db:3306/assessments")
        assert config.get_engine_options()["pool_recycle"] == 3600

    def test_database_configuration_validation(self):
        with pytest.raises(ValueError):
            DatabaseConfig(backend="invalid")
        with pytest.raises(ValueError):
            DatabaseConfig(backend="mysql", mysql_database="")

    def test_testing_environment(self):
        settings = get_settings()
        assert settings.is_testing()
        assert is_database_configured()

        info = settings.get_environment_info()
        assert info["environment"] == "testing"
        assert set(info["features"]) == {"data_export", "recalculation", "rate_limiting"}

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CATALOG_SECONDS_PER_QUESTION", "30")
        monkeypatch.setenv("SECURITY_RATE_LIMIT_ENABLED", "false")
        reset_settings()

        settings = get_settings()
        assert settings.catalog.seconds_per_question == 30
        assert settings.security.rate_limit_enabled is False

    def test_catalog_config_bounds(self):
        with pytest.raises(ValueError):
            CatalogConfig(seconds_per_question=0)

    def test_load_settings_from_file(self, tmp_path, monkeypatch):
        # registered so the value the loader writes to os.environ is removed afterwards
        monkeypatch.setenv("CATALOG_MAX_PILLAR_SCORE", "9")
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"catalog": {"max_pillar_score": 12}}), encoding="utf-8")

        settings = load_settings_from_file(str(config_file))
        assert settings.catalog.max_pillar_score == 12

        yaml_file = tmp_path / "settings.yaml"
        yaml_file.write_text("catalog: {}", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings_from_file(str(yaml_file))
        with pytest.raises(FileNotFoundError):
            load_settings_from_file(str(tmp_path / "missing.json"))


class TestRateLimiter:
    """Sliding-window request limiter."""

    def test_allows_up_to_limit_then_rejects(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=2, window_seconds=10, clock=lambda: now[0])

        limiter.check("client")
        now[0] = 4.0
        limiter.check("client")
        with pytest.raises(RateLimitExceededError) as excinfo:
            limiter.check("client")
        assert excinfo.value.retry_after == pytest.approx(6.0)

        limiter.check("other")

    def test_window_slides(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=lambda: now[0])
        limiter.check("client")
        now[0] = 10.5
        limiter.check("client")
        assert limiter.get_stats("client")["requests_in_window"] == 1

    def test_reset(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.check("a")
        limiter.check("b")
        limiter.reset("a")
        limiter.check("a")
        limiter.reset()
        limiter.check("b")

    def test_expired_keys_are_dropped(self):
        now = [0.0]
        limiter = RateLimiter(max_requests=5, window_seconds=10, clock=lambda: now[0])
        for i in range(1000):
            limiter.check(f"10.0.0.{i}")
        assert limiter.tracked_keys() == 1000

        now[0] = 11.0
        limiter.check("late")
        assert limiter.tracked_keys() == 1

    def test_stats_do_not_track_unknown_keys(self):
        limiter = RateLimiter(max_requests=1, window_seconds=10)
        stats = limiter.get_stats("never-seen")
        assert stats["requests_in_window"] == 0
        assert stats["remaining"] == 1
        assert limiter.tracked_keys() == 0
