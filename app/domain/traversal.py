"""
Traversal engine: walks the static question graph.

Next-question resolution is conditional-first, then default, then end of the
assessment. A link whose target is missing from the bank is an explicit
``Fallback``/``End`` case rather than a null check.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from ..infrastructure.exceptions import ConfigurationError, QuestionNotFoundError
from .models import (
    Assessment,
    ConditionalQuestion,
    DimensionProgress,
    End,
    Fallback,
    IntroQuestion,
    Milestone,
    PathStep,
    Question,
    QuestionView,
    Resolved,
    Response,
    ScoredQuestion,
    TimeEstimate,
    ValidationResult,
)
from .services import percentage, round_half_up

if TYPE_CHECKING:
    from .catalog import Catalogs

MILESTONES = (25, 50, 75, 100)
MILESTONE_MESSAGES = {
    25: "Great start! You have completed 25% of the assessment.",
    50: "Well done! You are halfway through.",
    75: "Almost there! Only a few questions left.",
    100: "Congratulations! The assessment is complete.",
}
LOW_SCORE_THRESHOLD = 3
LOW_AVERAGE_THRESHOLD = 4

_COMPANY_PLACEHOLDER = re.compile(r"your company", re.IGNORECASE)


class TraversalEngine:
    def __init__(self, catalogs: Catalogs, logger: logging.Logger | None = None):
        self.catalogs = catalogs
        self.questions = catalogs.questions
        self.dimensions = catalogs.dimensions
        self.config = catalogs.config
        self.logger = logger or logging.getLogger(__name__)
        self._expected_total = self.questions.default_path_length()

    def get_first_question(self) -> Question:
        if len(self.questions) == 0:
            raise ConfigurationError("Question bank is empty", config_key="questions")
        return self.questions.get_entry_question()

    def validate_response(self, question_id: str, answer_id: str) -> ValidationResult:
        question = self.questions.get_question_by_id(question_id)
        if question is None:
            return ValidationResult(valid=False, error="Question not found")
        option = next((o for o in question.options if o.id == answer_id), None)
        if option is None:
            return ValidationResult(valid=False, error="Invalid answer option")
        return ValidationResult(valid=True, option=option)

    # ------------------------------------------------------------------
    # Link resolution
    # ------------------------------------------------------------------

    def conditional_link(self, question: Question, answer_id: str | None) -> Resolved | Fallback:
        if answer_id is None or answer_id not in question.conditional_next:
            return Fallback(reason="no_conditional_link")
        target = question.conditional_next[answer_id]
        if target not in self.questions:
            return Fallback(reason="dangling_conditional_link", target=target)
        return Resolved(question_id=target, via="conditional")

    def default_link(self, question: Question) -> Resolved | End:
        target = question.default_next
        if target is None:
            return End(reason="no_default_link")
        if target not in self.questions:
            return End(reason="dangling_default_link", target=target)
        return Resolved(question_id=target, via="default")

    def resolve_link(self, question: Question, answer_id: str | None) -> Resolved | End:
        match self.conditional_link(question, answer_id):
            case Resolved() as step:
                return step
            case Fallback(reason="dangling_conditional_link", target=target):
                self.logger.warning(
                    "Conditional link %s -> %s is dangling, falling back to default link",
                    question.id,
                    target,
                )

        step = self.default_link(question)
        match step:
            case End(reason="dangling_default_link", target=target):
                self.logger.warning(
                    "Default link %s -> %s is dangling, ending assessment", question.id, target
                )
        return step

    def resolve_next(self, assessment: Assessment, response: Response) -> str | None:
        """
        Id of the question following ``response``, or None when the assessment is over.

        Raises:
            QuestionNotFoundError: If the answered question is not in the bank
        """
        question = self.questions.get_question_by_id(response.question_id)
        if question is None:
            raise QuestionNotFoundError(response.question_id)

        match self.resolve_link(question, response.answer_id):
            case Resolved(question_id=next_id, via=via):
                self.logger.debug(
                    "Assessment %s: %s -> %s (%s)", assessment.id, question.id, next_id, via
                )
                return next_id
            case End(reason=reason):
                self.logger.debug(
                    "Assessment %s: no question after %s (%s)", assessment.id, question.id, reason
                )
                return None

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def personalize_text(self, text: str, assessment: Assessment | None) -> str:
        if assessment is None or not assessment.company_info.name:
            return text
        name = assessment.company_info.name
        return _COMPANY_PLACEHOLDER.sub(lambda _: name, text)

    def format_question(self, question: Question, assessment: Assessment | None = None) -> QuestionView:
        match question:
            case ScoredQuestion():
                is_scored = True
            case IntroQuestion() | ConditionalQuestion():
                is_scored = False

        return QuestionView(
            id=question.id,
            kind=question.kind,
            text=self.personalize_text(question.text, assessment),
            options=question.options,
            dimension=question.dimension,
            pillar=question.pillar,
            is_scored=is_scored,
            has_conditional_logic=bool(question.conditional_next),
            is_last_question=question.default_next is None,
        )

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def get_dimension_progress(self, assessment: Assessment) -> list[DimensionProgress]:
        progress: list[DimensionProgress] = []
        for dimension in self.dimensions.get_dimensions():
            responses = assessment.responses_by_dimension(dimension.id)
            pillar_ids = set(dimension.pillar_ids())
            answered = {r.pillar for r in responses if r.pillar in pillar_ids}
            total = len(pillar_ids)

            if total and len(answered) == total:
                status = "completed"
            elif answered:
                status = "in_progress"
            else:
                status = "not_started"

            progress.append(
                DimensionProgress(
                    dimension_id=dimension.id,
                    dimension_name=dimension.name,
                    progress=percentage(len(answered), total),
                    questions_answered=len(responses),
                    status=status,
                )
            )
        return progress

    def _questions_remaining(self, assessment: Assessment) -> int:
        if assessment.is_completed:
            return 0
        if assessment.current_question_id:
            return self.questions.default_path_length(assessment.current_question_id)
        if not assessment.responses:
            return self._expected_total
        return max(0, self._expected_total - len(assessment.responses))

    def estimate_time_remaining(self, assessment: Assessment) -> TimeEstimate:
        """
        Estimate from the current question along its default links.

        Answered plus remaining questions form the expected total, so a detour
        through a conditional question lengthens the path instead of overshooting
        it. An assessment still in progress never reports 100%.
        """
        answered = len(assessment.responses)
        remaining = self._questions_remaining(assessment)
        total = answered + remaining
        seconds = remaining * self.config.seconds_per_question
        percent_complete = percentage(answered, total) if total else 100
        if assessment.is_in_progress:
            percent_complete = min(percent_complete, 99)
        return TimeEstimate(
            questions_remaining=remaining,
            estimated_minutes=round_half_up(seconds / 60),
            percent_complete=percent_complete,
        )

    def check_milestone(self, assessment: Assessment) -> Milestone:
        progress = self.estimate_time_remaining(assessment).percent_complete
        for milestone in MILESTONES:
            if milestone <= progress < milestone + 5:
                return Milestone(
                    reached=True, milestone=milestone, message=MILESTONE_MESSAGES[milestone]
                )
        return Milestone(reached=False)

    def question_path(self, assessment: Assessment) -> list[PathStep]:
        return [
            PathStep(
                step=index,
                question_id=r.question_id,
                answer_id=r.answer_id,
                score=r.score,
                dimension=r.dimension,
                pillar=r.pillar,
            )
            for index, r in enumerate(assessment.responses, start=1)
        ]

    def current_dimension(self, assessment: Assessment) -> str | None:
        if not assessment.responses:
            return None
        return assessment.responses[-1].dimension

    def recent_scores(self, assessment: Assessment, count: int = 3) -> list[dict[str, Any]]:
        if count <= 0:
            return []
        scored = [r for r in assessment.responses if r.is_scored]
        return [
            {"dimension": r.dimension, "pillar": r.pillar, "score": r.score}
            for r in scored[-count:]
        ]

    def in_progress_recommendations(self, assessment: Assessment) -> list[dict[str, Any]]:
        """Flag completed dimensions whose mean response score is below 4."""
        recommendations = []
        for progress in self.get_dimension_progress(assessment):
            if progress.status != "completed":
                continue
            responses = assessment.responses_by_dimension(progress.dimension_id)
            average = sum(r.score or 0 for r in responses) / len(responses)
            if average < LOW_AVERAGE_THRESHOLD:
                recommendations.append(
                    {
                        "type": "improvement_area",
                        "dimension_id": progress.dimension_id,
                        "dimension": progress.dimension_name,
                        "message": (
                            f'The "{progress.dimension_name}" dimension will need '
                            "particular attention."
                        ),
                    }
                )
        return recommendations

    def suggested_follow_ups(self, assessment: Assessment, dimension_id: str) -> list[dict[str, Any]]:
        return [
            {"pillar_id": r.pillar, "reason": "low_score", "priority": "high"}
            for r in assessment.responses_by_dimension(dimension_id)
            if r.score is not None and r.score <= LOW_SCORE_THRESHOLD
        ]
