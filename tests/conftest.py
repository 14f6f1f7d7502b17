from __future__ import annotations

import os

# Must be set before any app module reads settings or configures logging
os.environ["ENVIRONMENT"] = "testing"
os.environ["APP_ENVIRONMENT"] = "testing"
os.environ["DB_BACKEND"] = "sqlite"
os.environ["DB_SQLITE_PATH"] = ":memory:"

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain.catalog import Catalogs, initialize
from app.domain.models import Assessment, ScoredQuestion
from app.domain.workflow import AssessmentWorkflow
from app.infrastructure.config import CatalogConfig, reset_settings
from app.infrastructure.models import Base


@pytest.fixture(scope="session")
def catalogs() -> Catalogs:
    return initialize(CatalogConfig())


@pytest.fixture
def workflow(catalogs: Catalogs) -> AssessmentWorkflow:
    return AssessmentWorkflow(catalogs)


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, future=True, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture
def client() -> Iterator[TestClient]:
    from app.web.main import create_application

    reset_settings()
    with TestClient(create_application()) as test_client:
        yield test_client


def pick_answer(question, choices: dict[str, str], lowest: bool = False) -> str:
    """Explicit choice if given, else the best (or worst) scored option, else the first option."""
    if question.id in choices:
        return choices[question.id]
    if isinstance(question, ScoredQuestion):
        pick = min if lowest else max
        return pick(question.options, key=lambda o: o.score or 0).id
    return question.options[0].id


@pytest.fixture
def answer_all(catalogs: Catalogs) -> Callable[..., Assessment]:
    """Drive an assessment through the workflow until traversal ends."""

    def _answer_all(
        workflow: AssessmentWorkflow,
        assessment: Assessment,
        choices: dict[str, str] | None = None,
        lowest: bool = False,
    ) -> Assessment:
        choices = choices or {}
        for _ in range(len(catalogs.questions) + 1):
            if not assessment.is_in_progress:
                break
            question = catalogs.questions.get_question_required(assessment.current_question_id)
            workflow.submit_answer(assessment, question.id, pick_answer(question, choices, lowest))
        return assessment

    return _answer_all
