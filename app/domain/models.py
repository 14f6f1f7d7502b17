from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar, Literal


def utcnow() -> datetime:
    return datetime.now(UTC)


class AssessmentStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class QuestionKind(StrEnum):
    INTRO = "intro"
    SCORED = "scored"
    CONDITIONAL = "conditional"


Priority = Literal["high", "medium", "low"]
ScoreLevel = Literal["excellent", "good", "moderate", "low"]
ProgressStatus = Literal["not_started", "in_progress", "completed"]


# ---------------------------------------------------------------------------
# Static catalogs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Option:
    id: str
    text: str
    value: Any = None
    score: int | None = None  # only set on scored questions


@dataclass(frozen=True, slots=True)
class IntroQuestion:
    """Profile question asked before the scored part; never scored, never tagged."""

    id: str
    text: str
    options: tuple[Option, ...]
    default_next: str | None = None
    conditional_next: dict[str, str] = field(default_factory=dict)
    kind: ClassVar[QuestionKind] = QuestionKind.INTRO

    @property
    def dimension(self) -> None:
        return None

    @property
    def pillar(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class ScoredQuestion:
    """Question contributing its selected option's score to one pillar."""

    id: str
    text: str
    dimension: str
    pillar: str
    options: tuple[Option, ...]
    default_next: str | None = None
    conditional_next: dict[str, str] = field(default_factory=dict)
    kind: ClassVar[QuestionKind] = QuestionKind.SCORED


@dataclass(frozen=True, slots=True)
class ConditionalQuestion:
    """Unscored routing question: its answer only decides which branch comes next."""

    id: str
    text: str
    options: tuple[Option, ...]
    conditional_next: dict[str, str]
    default_next: str | None = None
    dimension: str | None = None
    pillar: str | None = None
    kind: ClassVar[QuestionKind] = QuestionKind.CONDITIONAL


Question = IntroQuestion | ScoredQuestion | ConditionalQuestion


@dataclass(frozen=True, slots=True)
class Pillar:
    id: str
    name: str
    max_score: int = 9


@dataclass(frozen=True, slots=True)
class Dimension:
    id: str
    name: str
    description: str
    pillars: tuple[Pillar, ...]
    color: str = "#6b7280"

    def pillar_ids(self) -> list[str]:
        return [p.id for p in self.pillars]


@dataclass(frozen=True, slots=True)
class MaturityProfile:
    id: str
    name: str
    description: str
    min_score: int
    max_score: int
    recommendations: tuple[str, ...] = ()
    color: str = "#6b7280"

    def contains(self, score: int) -> bool:
        # both bounds inclusive: 50 belongs to [26, 50], 51 to [51, 75]
        return self.min_score <= score <= self.max_score


# ---------------------------------------------------------------------------
# Link resolution variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Resolved:
    question_id: str
    via: Literal["conditional", "default"]


@dataclass(frozen=True, slots=True)
class Fallback:
    """The conditional link did not apply; the default link must be tried."""

    reason: Literal["no_conditional_link", "dangling_conditional_link"]
    target: str | None = None


@dataclass(frozen=True, slots=True)
class End:
    """No further question: the assessment is complete."""

    reason: Literal["no_default_link", "dangling_default_link"]
    target: str | None = None


NextStep = Resolved | Fallback | End


# ---------------------------------------------------------------------------
# Assessment state
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CompanyInfo:
    name: str | None = None
    size: str | None = None
    sector: str | None = None


@dataclass(slots=True)
class Response:
    question_id: str
    answer_id: str
    answer_text: str
    dimension: str | None = None
    pillar: str | None = None
    score: int | None = None
    answered_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    @property
    def is_scored(self) -> bool:
        return self.score is not None

    @classmethod
    def from_question_and_option(cls, question: Question, option: Option) -> Response:
        return cls(
            question_id=question.id,
            answer_id=option.id,
            answer_text=option.text,
            dimension=question.dimension,
            pillar=question.pillar,
            score=option.score if isinstance(question, ScoredQuestion) else None,
        )


@dataclass(slots=True)
class Assessment:
    """
    Mutable record of one respondent's journey.

    Owned by a single caller session; persistence is responsible for serialising
    concurrent updates to the same id.
    """

    id: str
    company_info: CompanyInfo = field(default_factory=CompanyInfo)
    responses: list[Response] = field(default_factory=list)
    current_question_id: str | None = None
    status: AssessmentStatus = AssessmentStatus.IN_PROGRESS
    scores: Result | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def add_response(self, response: Response) -> None:
        """Upsert by question id: a resubmission replaces the prior answer in place."""
        now = utcnow()
        for index, existing in enumerate(self.responses):
            if existing.question_id == response.question_id:
                response.answered_at = existing.answered_at
                response.updated_at = now
                self.responses[index] = response
                break
        else:
            response.answered_at = now
            self.responses.append(response)
        self.updated_at = now

    def get_response(self, question_id: str) -> Response | None:
        return next((r for r in self.responses if r.question_id == question_id), None)

    def responses_by_dimension(self, dimension_id: str) -> list[Response]:
        return [r for r in self.responses if r.dimension == dimension_id]

    def responses_by_pillar(self, dimension_id: str, pillar_id: str) -> list[Response]:
        return [r for r in self.responses if r.dimension == dimension_id and r.pillar == pillar_id]

    def update_current_question(self, question_id: str) -> None:
        self.current_question_id = question_id
        self.updated_at = utcnow()

    def complete(self, scores: Result) -> None:
        now = utcnow()
        self.status = AssessmentStatus.COMPLETED
        self.current_question_id = None
        self.scores = scores
        self.completed_at = now
        self.updated_at = now

    def set_scores(self, scores: Result) -> None:
        self.scores = scores
        self.updated_at = utcnow()

    def abandon(self) -> None:
        self.status = AssessmentStatus.ABANDONED
        self.updated_at = utcnow()

    @property
    def is_completed(self) -> bool:
        return self.status == AssessmentStatus.COMPLETED

    @property
    def is_in_progress(self) -> bool:
        return self.status == AssessmentStatus.IN_PROGRESS


# ---------------------------------------------------------------------------
# Scoring results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PillarScore:
    pillar_id: str
    pillar_name: str
    points: int  # capped at max_points
    max_points: int
    percentage: int
    response_count: int


@dataclass(frozen=True, slots=True)
class DimensionScore:
    dimension_id: str
    dimension_name: str
    description: str
    total_points: int
    max_points: int
    percentage: int
    pillar_scores: tuple[PillarScore, ...]


@dataclass(frozen=True, slots=True)
class Strength:
    dimension_id: str
    dimension_name: str
    percentage: int
    level: ScoreLevel


@dataclass(frozen=True, slots=True)
class Gap:
    dimension_id: str
    dimension_name: str
    percentage: int
    level: ScoreLevel
    improvement_potential: int


@dataclass(frozen=True, slots=True)
class PriorityAction:
    dimension_id: str
    dimension_name: str
    pillar_id: str
    pillar_name: str
    current_score: int
    priority: Priority


@dataclass(frozen=True, slots=True)
class Result:
    assessment_id: str
    global_score: int
    maturity_profile: MaturityProfile
    dimension_scores: tuple[DimensionScore, ...]
    strengths: tuple[Strength, ...]
    gaps: tuple[Gap, ...]
    priority_actions: tuple[PriorityAction, ...]
    calculated_at: datetime = field(default_factory=utcnow)

    def get_dimension_score(self, dimension_id: str) -> DimensionScore | None:
        return next((d for d in self.dimension_scores if d.dimension_id == dimension_id), None)


# ---------------------------------------------------------------------------
# Read models handed to the HTTP layer
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    option: Option | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class QuestionView:
    id: str
    kind: QuestionKind
    text: str
    options: tuple[Option, ...]
    dimension: str | None
    pillar: str | None
    is_scored: bool
    has_conditional_logic: bool
    is_last_question: bool


@dataclass(frozen=True, slots=True)
class DimensionProgress:
    dimension_id: str
    dimension_name: str
    progress: int
    questions_answered: int
    status: ProgressStatus


@dataclass(frozen=True, slots=True)
class TimeEstimate:
    questions_remaining: int
    estimated_minutes: int
    percent_complete: int


@dataclass(frozen=True, slots=True)
class PathStep:
    step: int
    question_id: str
    answer_id: str
    score: int | None
    dimension: str | None
    pillar: str | None


@dataclass(frozen=True, slots=True)
class Milestone:
    reached: bool
    milestone: int | None = None
    message: str | None = None
