from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.schemas import BaseValidationSchema


class ORMModel(BaseModel):
    """Response model readable from domain dataclasses."""

    model_config = ConfigDict(from_attributes=True)


# --------------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------------


class StartAssessmentRequest(BaseValidationSchema):
    company_name: Optional[str] = None
    company_size: Optional[str] = None
    sector: Optional[str] = None


class AnswerRequest(BaseValidationSchema):
    question_id: str
    answer_id: str


# --------------------------------------------------------------------------
# Catalog
# --------------------------------------------------------------------------


class Pillar(ORMModel):
    id: str
    name: str
    max_score: int


class Dimension(ORMModel):
    id: str
    name: str
    description: str
    color: str
    pillars: list[Pillar]


class MaturityProfile(ORMModel):
    id: str
    name: str
    description: str
    min_score: int
    max_score: int
    color: str
    recommendations: list[str] = Field(default_factory=list)


class DimensionCatalogResponse(BaseModel):
    dimensions: list[Dimension]
    maturity_profiles: list[MaturityProfile]


class QuestionStatistics(BaseModel):
    total: int
    by_type: dict[str, int]
    by_dimension: dict[str, dict[str, Any]]
    avg_options_per_question: float


class Option(ORMModel):
    id: str
    text: str


class Question(ORMModel):
    id: str
    kind: str
    text: str
    options: list[Option]
    dimension: Optional[str] = None
    pillar: Optional[str] = None
    is_scored: bool
    has_conditional_logic: bool
    is_last_question: bool


# --------------------------------------------------------------------------
# Assessments
# --------------------------------------------------------------------------


class DimensionProgress(ORMModel):
    dimension_id: str
    dimension_name: str
    progress: int
    questions_answered: int
    status: Literal["not_started", "in_progress", "completed"]


class TimeEstimate(ORMModel):
    questions_remaining: int
    estimated_minutes: int
    percent_complete: int


class Milestone(ORMModel):
    reached: bool
    milestone: Optional[int] = None
    message: Optional[str] = None


class Progress(BaseModel):
    status: str
    questions_answered: int
    progress_score: int
    dimension_progress: list[DimensionProgress]
    estimated_time_remaining: TimeEstimate
    milestone: Milestone
    current_dimension: Optional[str] = None
    recent_scores: list[dict[str, Any]] = Field(default_factory=list)
    recommendations: list[dict[str, Any]] = Field(default_factory=list)
    follow_ups: list[dict[str, Any]] = Field(default_factory=list)


class CompanyInfo(ORMModel):
    name: Optional[str] = None
    size: Optional[str] = None
    sector: Optional[str] = None


class ResponseRecord(ORMModel):
    question_id: str
    answer_id: str
    answer_text: str
    dimension: Optional[str] = None
    pillar: Optional[str] = None
    score: Optional[int] = None
    answered_at: datetime
    updated_at: Optional[datetime] = None


class AssessmentDetail(ORMModel):
    id: str
    status: str
    company_info: CompanyInfo
    current_question_id: Optional[str] = None
    responses: list[ResponseRecord]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class StartAssessmentResponse(BaseModel):
    assessment_id: str
    question: Question
    progress: Progress


class AnswerResponse(BaseModel):
    assessment_id: str
    completed: bool
    next_question: Optional[Question] = None
    progress: Progress
    results_url: Optional[str] = None


class ResumeResponse(BaseModel):
    assessment_id: str
    question: Question
    progress: Progress
    company_info: CompanyInfo


class OperationResponse(BaseModel):
    success: bool
    message: str


# --------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------


class PillarScore(ORMModel):
    pillar_id: str
    pillar_name: str
    points: int
    max_points: int
    percentage: int
    response_count: int


class DimensionScore(ORMModel):
    dimension_id: str
    dimension_name: str
    description: str
    total_points: int
    max_points: int
    percentage: int
    pillar_scores: list[PillarScore]


class Strength(ORMModel):
    dimension_id: str
    dimension_name: str
    percentage: int
    level: str


class Gap(ORMModel):
    dimension_id: str
    dimension_name: str
    percentage: int
    level: str
    improvement_potential: int


class PriorityAction(ORMModel):
    dimension_id: str
    dimension_name: str
    pillar_id: str
    pillar_name: str
    current_score: int
    priority: Literal["high", "medium", "low"]


class Result(ORMModel):
    assessment_id: str
    global_score: int
    maturity_profile: MaturityProfile
    dimension_scores: list[DimensionScore]
    strengths: list[Strength]
    gaps: list[Gap]
    priority_actions: list[PriorityAction]
    calculated_at: datetime


class ResultsResponse(BaseModel):
    assessment_id: str
    company_info: CompanyInfo
    completed_at: Optional[datetime] = None
    result: Result


class DimensionDetails(ORMModel):
    dimension: DimensionScore
    level: str
    responses: list[ResponseRecord]
    weakest_pillar: Optional[PillarScore] = None
    strongest_pillar: Optional[PillarScore] = None


class DimensionChange(BaseModel):
    dimension_id: str
    dimension_name: str
    change: int
    previous_score: int
    current_score: int


class ComparisonResponse(BaseModel):
    global_score_change: int
    profile_changed: bool
    dimension_changes: list[DimensionChange]
    improvement_trend: Literal["improving", "declining", "stable"]


class FigureResponse(BaseModel):
    assessment_id: str
    radar: dict[str, Any]


# --------------------------------------------------------------------------
# Service
# --------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str


class InfoResponse(BaseModel):
    title: str
    version: str
    environment: str
    question_count: int
    dimension_count: int
    features: dict[str, bool]
