# app/infrastructure/repositories_assessment.py
from __future__ import annotations

import builtins
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import Assessment, AssessmentStatus
from .exceptions import AssessmentNotFoundError, handle_database_error
from .logging import get_logger
from .logging import log_database_operation as log_op
from .models import AssessmentORM
from .repositories_base import BaseRepository as GenericBaseRepository

assessment_adapter: TypeAdapter[Assessment] = TypeAdapter(Assessment)

logger = get_logger(__name__)


def assessment_to_record(assessment: Assessment) -> dict[str, Any]:
    """JSON-serialisable form of an assessment (ISO datetimes, plain dicts and lists)."""
    return assessment_adapter.dump_python(assessment, mode="json")


def assessment_from_record(record: dict[str, Any]) -> Assessment:
    return assessment_adapter.validate_python(record)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset on DateTime(timezone=True) columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class AssessmentRepo(GenericBaseRepository[AssessmentORM]):
    """
    Persistence collaborator for assessments.

    Each row keeps the identifying and lifecycle fields as columns and the
    nested company info, responses and result as JSON documents.

    Example:
        >>> with uow.begin() as s:
        ...     repo = AssessmentRepo(s)
        ...     repo.save(assessment)
        ...     loaded = repo.load_required(assessment.id)
    """

    model = AssessmentORM

    def __init__(self, session: Session):
        super().__init__(session)

    # -------- Mapping --------

    @staticmethod
    def to_domain(row: AssessmentORM) -> Assessment:
        return assessment_from_record(
            {
                "id": row.id,
                "company_info": row.company_info or {},
                "responses": row.responses or [],
                "current_question_id": row.current_question_id,
                "status": row.status,
                "scores": row.scores,
                "created_at": _as_utc(row.created_at),
                "updated_at": _as_utc(row.updated_at),
                "completed_at": _as_utc(row.completed_at),
            }
        )

    @staticmethod
    def apply(row: AssessmentORM, assessment: Assessment) -> AssessmentORM:
        record = assessment_to_record(assessment)
        row.company_info = record["company_info"]
        row.responses = record["responses"]
        row.current_question_id = assessment.current_question_id
        row.status = str(assessment.status)
        row.scores = record["scores"]
        row.created_at = assessment.created_at
        row.updated_at = assessment.updated_at
        row.completed_at = assessment.completed_at
        return row

    # -------- Read --------

    @log_op("assessment.load")
    def load(self, assessment_id: str) -> Assessment | None:
        try:
            row = self.get(assessment_id)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "load assessment") from e
        return self.to_domain(row) if row is not None else None

    @log_op("assessment.load_required")
    def load_required(self, assessment_id: str) -> Assessment:
        assessment = self.load(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    @log_op("assessment.list_recent")
    def list_recent(
        self, limit: int = 20, status: AssessmentStatus | str | None = None
    ) -> builtins.list[Assessment]:
        filters = [AssessmentORM.status == str(status)] if status is not None else []
        try:
            rows = self.list(*filters, order_by=[AssessmentORM.created_at.desc()], limit=limit)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "list assessments") from e
        return [self.to_domain(row) for row in rows]

    @log_op("assessment.count_by_status")
    def count_by_status(self) -> dict[str, int]:
        return {
            str(status): self.count(AssessmentORM.status == str(status))
            for status in AssessmentStatus
        }

    # -------- Write --------

    @log_op("assessment.save")
    def save(self, assessment: Assessment) -> None:
        """Insert the assessment or overwrite the stored row with the same id."""
        try:
            row = self.get(assessment.id)
            if row is None:
                self.add(self.apply(AssessmentORM(id=assessment.id), assessment))
                logger.debug("Inserted assessment %s", assessment.id)
            else:
                self.apply(row, assessment)
                self.s.flush()
                logger.debug("Updated assessment %s", assessment.id)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "save assessment") from e

    @log_op("assessment.delete")
    def delete(self, assessment_id: str) -> bool:
        try:
            row = self.get(assessment_id)
            if row is None:
                return False
            self.remove(row)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "delete assessment") from e
        return True
