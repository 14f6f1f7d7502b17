from __future__ import annotations

import io
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.application import api as app_api
from app.domain.catalog import Catalogs
from app.domain.models import Assessment, QuestionView
from app.infrastructure.config import get_settings
from app.web.dependencies import get_catalogs, get_db_session, rate_limit, strict_rate_limit
from app.web.schemas import (
    AnswerRequest,
    AnswerResponse,
    AssessmentDetail,
    ComparisonResponse,
    DimensionCatalogResponse,
    DimensionDetails,
    FigureResponse,
    HealthResponse,
    InfoResponse,
    OperationResponse,
    Progress,
    Question,
    QuestionStatistics,
    Result,
    ResultsResponse,
    ResumeResponse,
    StartAssessmentRequest,
    StartAssessmentResponse,
)

router = APIRouter(dependencies=[Depends(rate_limit)])
logger = logging.getLogger(__name__)


def _question(view: QuestionView) -> Question:
    return Question.model_validate(view)


def _progress(catalogs: Catalogs, assessment: Assessment) -> Progress:
    return Progress(**app_api.build_progress(catalogs, assessment))


def _download(content: bytes, media_type: str, filename: str) -> StreamingResponse:
    stream = io.BytesIO(content)
    stream.seek(0)
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(stream, media_type=media_type, headers=headers)


# --------------------------------------------------------------------------
# Service
# --------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def healthcheck() -> HealthResponse:
    return HealthResponse(
        status="ok", timestamp=datetime.now(UTC), version=get_settings().app.version
    )


@router.get("/info", response_model=InfoResponse)
def service_info(catalogs: Catalogs = Depends(get_catalogs)) -> InfoResponse:
    settings = get_settings()
    info = settings.get_environment_info()
    return InfoResponse(
        title=settings.app.title,
        version=settings.app.version,
        environment=settings.app.environment,
        question_count=len(catalogs.questions),
        dimension_count=len(catalogs.dimensions.get_dimensions()),
        features=info["features"],
    )


# --------------------------------------------------------------------------
# Catalog
# --------------------------------------------------------------------------


@router.get("/dimensions", response_model=DimensionCatalogResponse)
def list_dimensions(catalogs: Catalogs = Depends(get_catalogs)) -> DimensionCatalogResponse:
    return DimensionCatalogResponse.model_validate(
        {
            "dimensions": catalogs.dimensions.get_dimensions(),
            "maturity_profiles": catalogs.dimensions.get_maturity_profiles(),
        },
        from_attributes=True,
    )


@router.get("/questions/stats", response_model=QuestionStatistics)
def question_statistics(catalogs: Catalogs = Depends(get_catalogs)) -> QuestionStatistics:
    return QuestionStatistics(**app_api.question_statistics(catalogs))


# --------------------------------------------------------------------------
# Assessments
# --------------------------------------------------------------------------


@router.post(
    "/assessments/start",
    response_model=StartAssessmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_assessment(
    payload: StartAssessmentRequest,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> StartAssessmentResponse:
    try:
        assessment = app_api.start_assessment(
            db,
            catalogs,
            company_name=payload.company_name,
            company_size=payload.company_size,
            sector=payload.sector,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    view = app_api.current_question_view(catalogs, assessment)
    return StartAssessmentResponse(
        assessment_id=assessment.id,
        question=_question(view),
        progress=_progress(catalogs, assessment),
    )


@router.post("/assessments/{assessment_id}/answer", response_model=AnswerResponse)
def submit_answer(
    assessment_id: str,
    payload: AnswerRequest,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> AnswerResponse:
    try:
        outcome = app_api.submit_answer(
            db,
            catalogs,
            assessment_id=assessment_id,
            question_id=payload.question_id,
            answer_id=payload.answer_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    assessment = outcome.assessment
    if outcome.completed:
        return AnswerResponse(
            assessment_id=assessment.id,
            completed=True,
            progress=_progress(catalogs, assessment),
            results_url=f"{get_settings().app.api_prefix}/results/{assessment.id}",
        )

    view = app_api.current_question_view(catalogs, assessment)
    return AnswerResponse(
        assessment_id=assessment.id,
        completed=False,
        next_question=_question(view) if view else None,
        progress=_progress(catalogs, assessment),
    )


@router.get("/assessments/{assessment_id}", response_model=AssessmentDetail)
def get_assessment(assessment_id: str, db: Session = Depends(get_db_session)) -> AssessmentDetail:
    assessment = app_api.get_assessment(db, assessment_id)
    return AssessmentDetail.model_validate(assessment)


@router.get("/assessments/{assessment_id}/progress", response_model=Progress)
def get_progress(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> Progress:
    assessment = app_api.get_assessment(db, assessment_id)
    return _progress(catalogs, assessment)


@router.get("/assessments/{assessment_id}/resume", response_model=ResumeResponse)
def resume_assessment(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> ResumeResponse:
    assessment, view = app_api.resume_assessment(db, catalogs, assessment_id)
    return ResumeResponse.model_validate(
        {
            "assessment_id": assessment.id,
            "question": _question(view),
            "progress": _progress(catalogs, assessment),
            "company_info": assessment.company_info,
        },
        from_attributes=True,
    )


@router.post("/assessments/{assessment_id}/abandon", response_model=OperationResponse)
def abandon_assessment(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> OperationResponse:
    try:
        app_api.abandon_assessment(db, catalogs, assessment_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return OperationResponse(success=True, message=f"Assessment {assessment_id} abandoned")


@router.delete(
    "/assessments/{assessment_id}",
    response_model=OperationResponse,
    dependencies=[Depends(strict_rate_limit)],
)
def delete_assessment(assessment_id: str, db: Session = Depends(get_db_session)) -> OperationResponse:
    try:
        app_api.delete_assessment(db, assessment_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return OperationResponse(success=True, message=f"Assessment {assessment_id} deleted")


# --------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------


@router.get("/results/{assessment_id}", response_model=ResultsResponse)
def get_results(assessment_id: str, db: Session = Depends(get_db_session)) -> ResultsResponse:
    assessment, result = app_api.get_results(db, assessment_id)
    return ResultsResponse.model_validate(
        {
            "assessment_id": assessment.id,
            "company_info": assessment.company_info,
            "completed_at": assessment.completed_at,
            "result": result,
        },
        from_attributes=True,
    )


@router.get("/results/{assessment_id}/summary")
def get_results_summary(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> dict:
    return app_api.get_results_summary(db, catalogs, assessment_id)


@router.get("/results/{assessment_id}/dimension/{dimension_id}", response_model=DimensionDetails)
def get_dimension_details(
    assessment_id: str,
    dimension_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> DimensionDetails:
    details = app_api.get_dimension_details(db, catalogs, assessment_id, dimension_id)
    return DimensionDetails.model_validate(details, from_attributes=True)


@router.get("/results/{assessment_id}/compare/{previous_id}", response_model=ComparisonResponse)
def compare_results(
    assessment_id: str,
    previous_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> ComparisonResponse:
    return ComparisonResponse(
        **app_api.compare_assessments(db, catalogs, assessment_id, previous_id)
    )


@router.get("/results/{assessment_id}/export/{export_format}")
def export_results(
    assessment_id: str,
    export_format: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> StreamingResponse:
    content, media_type, filename = app_api.export_results(
        db, catalogs, assessment_id, export_format
    )
    return _download(content, media_type, filename)


@router.get("/results/{assessment_id}/figure", response_model=FigureResponse)
def get_results_figure(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> FigureResponse:
    radar = app_api.build_results_figure(db, catalogs, assessment_id)
    return FigureResponse(assessment_id=assessment_id, radar=radar)


@router.post(
    "/results/{assessment_id}/recalculate",
    response_model=Result,
    dependencies=[Depends(strict_rate_limit)],
)
def recalculate_results(
    assessment_id: str,
    db: Session = Depends(get_db_session),
    catalogs: Catalogs = Depends(get_catalogs),
) -> Result:
    try:
        result = app_api.recalculate_scores(db, catalogs, assessment_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Recalculated results for %s", assessment_id)
    return Result.model_validate(result)
