from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from .repositories_assessment import AssessmentRepo


class UnitOfWork:
    """Transaction boundary: commit when the block exits cleanly, roll back otherwise."""

    def __init__(self, SessionLocal: sessionmaker):
        self.SessionLocal = SessionLocal

    @contextmanager
    def begin(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    @contextmanager
    def assessments(self) -> Iterator[AssessmentRepo]:
        with self.begin() as s:
            yield AssessmentRepo(s)
