"""
Application API layer with comprehensive error handling and validation.

This module provides the use cases behind the HTTP routes: it loads and saves
assessments through the repository, drives the workflow, and wraps unexpected
failures into typed application errors with user-friendly messages.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from sqlalchemy.orm import Session

from ..domain.catalog import Catalogs
from ..domain.models import Assessment, QuestionView, Result
from ..domain.schemas import (
    AnswerSubmissionInput,
    AssessmentIdInput,
    StartAssessmentInput,
    validate_input,
)
from ..domain.services import ScoringService
from ..domain.traversal import TraversalEngine
from ..domain.workflow import AnswerOutcome, AssessmentWorkflow
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    AssessmentStateError,
    BusinessLogicError,
    DigiAssistantError,
    ExportError,
    QuestionNotFoundError,
    ValidationError,
    create_user_friendly_error_message,
    log_error_details,
)
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..infrastructure.repositories import AssessmentRepo
from ..utils.exports import make_csv_export_bytes, make_json_export_payload, make_xlsx_export_bytes
from ..utils.maturity_radar import make_maturity_radar

logger = get_logger(__name__)

EXPORT_MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _validation_message(result) -> str:
    return "; ".join(f"{e.field}: {e.message}" for e in result.errors)


def _wrap_unexpected(e: Exception, message: str, context: dict[str, Any]) -> DigiAssistantError:
    error_details = log_error_details(e, context)
    return DigiAssistantError(
        f"{message}: {str(e)}",
        details=error_details,
        user_message=create_user_friendly_error_message(e),
    )


def _load(repo: AssessmentRepo, assessment_id: str) -> Assessment:
    validation_result = validate_input(AssessmentIdInput, {"assessment_id": assessment_id})
    if not validation_result.success:
        raise ValidationError("assessment_id", _validation_message(validation_result))
    return repo.load_required(assessment_id)


def _require_completed(assessment: Assessment, operation: str) -> Result:
    if not assessment.is_completed or assessment.scores is None:
        raise AssessmentStateError(assessment.id, str(assessment.status), operation)
    return assessment.scores


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def question_statistics(catalogs: Catalogs) -> dict[str, Any]:
    """Counts of the loaded question bank by type, dimension and pillar."""
    return catalogs.questions.statistics(catalogs.dimensions.get_dimensions())


# ---------------------------------------------------------------------------
# Assessment lifecycle
# ---------------------------------------------------------------------------


@log_operation("start_assessment")
def start_assessment(
    session: Session,
    catalogs: Catalogs,
    company_name: str | None = None,
    company_size: str | None = None,
    sector: str | None = None,
) -> Assessment:
    """
    Create and persist a new in-progress assessment positioned on the entry question.

    Raises:
        ValidationError: If company information is invalid

    Example:
        >>> assessment = start_assessment(session, catalogs, company_name="Acme")
        >>> assessment.current_question_id
        'intro_company_size'
    """
    validation_result = validate_input(
        StartAssessmentInput,
        {"company_name": company_name, "company_size": company_size, "sector": sector},
    )
    if not validation_result.success:
        error_msg = _validation_message(validation_result)
        logger.warning(f"Assessment start validation failed: {error_msg}")
        raise ValidationError("company_info", error_msg)
    data = validation_result.data or {}

    try:
        workflow = AssessmentWorkflow(catalogs)
        assessment = workflow.start(
            company_name=data.get("company_name"),
            company_size=data.get("company_size"),
            sector=data.get("sector"),
        )
        AssessmentRepo(session).save(assessment)
        logger.info(f"Created assessment {assessment.id}")
        return assessment

    except DigiAssistantError:
        raise
    except Exception as e:
        error = _wrap_unexpected(e, "Failed to start assessment", {"company_name": company_name})
        logger.error("Failed to start assessment", extra=error.details)
        raise error from e


@log_operation("submit_answer")
def submit_answer(
    session: Session,
    catalogs: Catalogs,
    assessment_id: str,
    question_id: str,
    answer_id: str,
) -> AnswerOutcome:
    """
    Record an answer, advance the assessment and persist it.

    When traversal yields no further question the assessment is completed and
    scored in the same call.

    Raises:
        ValidationError: If identifiers are malformed
        AssessmentNotFoundError: If the assessment does not exist
        AssessmentStateError: If the assessment is no longer in progress
        QuestionNotFoundError: If the question is not in the bank
        InvalidAnswerError: If the answer is not among the question's options
    """
    validation_result = validate_input(
        AnswerSubmissionInput, {"question_id": question_id, "answer_id": answer_id}
    )
    if not validation_result.success:
        error_msg = _validation_message(validation_result)
        logger.warning(f"Answer validation failed: {error_msg}")
        raise ValidationError("answer", error_msg)

    with LogContext(assessment_id=assessment_id, question_id=question_id):
        try:
            repo = AssessmentRepo(session)
            assessment = _load(repo, assessment_id)
            outcome = AssessmentWorkflow(catalogs).submit_answer(assessment, question_id, answer_id)
            repo.save(outcome.assessment)

            if outcome.completed:
                logger.info(f"Assessment {assessment_id} completed")
            else:
                logger.info(
                    f"Recorded answer {answer_id} for {question_id}; "
                    f"next question {outcome.next_question.id if outcome.next_question else None}"
                )
            return outcome

        except DigiAssistantError:
            raise
        except Exception as e:
            error = _wrap_unexpected(
                e,
                f"Failed to record answer for assessment {assessment_id}",
                {"assessment_id": assessment_id, "question_id": question_id, "answer_id": answer_id},
            )
            logger.error("Failed to submit answer", extra=error.details)
            raise error from e


@log_operation("get_assessment")
def get_assessment(session: Session, assessment_id: str) -> Assessment:
    return _load(AssessmentRepo(session), assessment_id)


def current_question_view(catalogs: Catalogs, assessment: Assessment) -> QuestionView | None:
    if not assessment.is_in_progress or assessment.current_question_id is None:
        return None
    question = catalogs.questions.get_question_by_id(assessment.current_question_id)
    if question is None:
        return None
    return TraversalEngine(catalogs).format_question(question, assessment)


def build_progress(catalogs: Catalogs, assessment: Assessment) -> dict[str, Any]:
    """
    Real-time progress of an assessment.

    Combines the provisional score, per-dimension coverage, time estimate,
    milestone and in-flight recommendations.
    """
    traversal = TraversalEngine(catalogs)
    scoring = ScoringService(catalogs)
    current = traversal.current_dimension(assessment)
    return {
        "status": str(assessment.status),
        "questions_answered": len(assessment.responses),
        "progress_score": scoring.calculate_progress_score(assessment.responses),
        "dimension_progress": [asdict(p) for p in traversal.get_dimension_progress(assessment)],
        "estimated_time_remaining": asdict(traversal.estimate_time_remaining(assessment)),
        "milestone": asdict(traversal.check_milestone(assessment)),
        "current_dimension": current,
        "recent_scores": traversal.recent_scores(assessment),
        "recommendations": traversal.in_progress_recommendations(assessment),
        "follow_ups": traversal.suggested_follow_ups(assessment, current) if current else [],
    }


@log_operation("resume_assessment")
def resume_assessment(
    session: Session, catalogs: Catalogs, assessment_id: str
) -> tuple[Assessment, QuestionView]:
    """
    Load an in-progress assessment together with the question to present next.

    Raises:
        AssessmentStateError: If the assessment is completed or abandoned
        QuestionNotFoundError: If the stored current question left the bank
    """
    assessment = _load(AssessmentRepo(session), assessment_id)
    if not assessment.is_in_progress:
        raise AssessmentStateError(assessment.id, str(assessment.status), "resume")

    view = current_question_view(catalogs, assessment)
    if view is None:
        raise QuestionNotFoundError(assessment.current_question_id)
    return assessment, view


@log_operation("delete_assessment")
def delete_assessment(session: Session, assessment_id: str) -> None:
    repo = AssessmentRepo(session)
    _load(repo, assessment_id)
    repo.delete(assessment_id)
    logger.info(f"Deleted assessment {assessment_id}")


@log_operation("abandon_assessment")
def abandon_assessment(session: Session, catalogs: Catalogs, assessment_id: str) -> Assessment:
    """Mark an in-progress assessment as abandoned (timeout or explicit policy)."""
    repo = AssessmentRepo(session)
    assessment = _load(repo, assessment_id)
    AssessmentWorkflow(catalogs).abandon(assessment)
    repo.save(assessment)
    return assessment


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@log_operation("get_results")
def get_results(session: Session, assessment_id: str) -> tuple[Assessment, Result]:
    """
    Stored result of a completed assessment.

    Raises:
        AssessmentNotFoundError: If the assessment does not exist
        AssessmentStateError: If the assessment is not completed yet
    """
    assessment = _load(AssessmentRepo(session), assessment_id)
    return assessment, _require_completed(assessment, "view results of")


@log_operation("get_results_summary")
def get_results_summary(session: Session, catalogs: Catalogs, assessment_id: str) -> dict[str, Any]:
    _, result = get_results(session, assessment_id)
    summary = ScoringService(catalogs).summarize(result)
    summary["assessment_id"] = assessment_id
    summary["maturity_profile"] = {
        "id": result.maturity_profile.id,
        "name": result.maturity_profile.name,
        "color": result.maturity_profile.color,
    }
    return summary


@log_operation("get_dimension_details")
def get_dimension_details(
    session: Session, catalogs: Catalogs, assessment_id: str, dimension_id: str
) -> dict[str, Any]:
    catalogs.dimensions.get_dimension_required(dimension_id)
    assessment, result = get_results(session, assessment_id)
    return ScoringService(catalogs).dimension_details(result, assessment, dimension_id)


@log_operation("compare_assessments")
def compare_assessments(
    session: Session, catalogs: Catalogs, assessment_id: str, previous_id: str
) -> dict[str, Any]:
    _, current = get_results(session, assessment_id)
    _, previous = get_results(session, previous_id)
    return ScoringService(catalogs).compare_results(current, previous)


@log_operation("recalculate_scores")
def recalculate_scores(session: Session, catalogs: Catalogs, assessment_id: str) -> Result:
    """
    Force a new scoring pass over a completed assessment and overwrite its result.

    Raises:
        BusinessLogicError: If recalculation is disabled by configuration
        AssessmentStateError: If the assessment is not completed
    """
    if not get_settings().app.enable_recalculation:
        raise BusinessLogicError(
            "Score recalculation is disabled",
            rule="feature_disabled",
            user_message="Score recalculation is not available.",
        )

    with LogContext(assessment_id=assessment_id):
        repo = AssessmentRepo(session)
        assessment = _load(repo, assessment_id)
        result = AssessmentWorkflow(catalogs).recalculate(assessment)
        repo.save(assessment)
        logger.info(f"Recalculated assessment {assessment_id}: global={result.global_score}")
        return result


@log_operation("export_results")
def export_results(
    session: Session, catalogs: Catalogs, assessment_id: str, export_format: str
) -> tuple[bytes, str, str]:
    """
    Render the result of a completed assessment.

    Returns:
        Tuple of (content, media type, file name)

    Raises:
        BusinessLogicError: If exports are disabled by configuration
        ExportError: If the format is unknown or rendering fails
    """
    if not get_settings().app.enable_data_export:
        raise BusinessLogicError(
            "Data export is disabled",
            rule="feature_disabled",
            user_message="Data export is not available.",
        )
    if export_format not in EXPORT_MEDIA_TYPES:
        raise ExportError(f"Unsupported export format: {export_format}", export_format=export_format)

    assessment, result = get_results(session, assessment_id)
    filename = f"digiassistant-{assessment_id}.{export_format}"

    try:
        if export_format == "json":
            payload = make_json_export_payload(assessment, result, catalogs)
            content = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
        elif export_format == "csv":
            content = make_csv_export_bytes(result)
        else:
            content = make_xlsx_export_bytes(assessment, result)
    except Exception as e:
        error_details = log_error_details(e, {"assessment_id": assessment_id, "format": export_format})
        logger.error("Failed to export results", extra=error_details)
        raise ExportError(
            f"Failed to export results of {assessment_id}: {str(e)}",
            export_format=export_format,
            details=error_details,
        ) from e

    logger.info(f"Exported assessment {assessment_id} as {export_format}")
    return content, EXPORT_MEDIA_TYPES[export_format], filename


@log_operation("build_results_figure")
def build_results_figure(session: Session, catalogs: Catalogs, assessment_id: str) -> dict[str, Any]:
    """Plotly radar of the dimension percentages, as a JSON-ready dict."""
    _, result = get_results(session, assessment_id)
    fig = make_maturity_radar(result, catalogs.dimensions.get_dimensions())
    return json.loads(fig.to_json())
