"""
Assessment state machine.

``in_progress -> completed`` happens exactly once, when traversal yields no next
question; scores are computed at that transition. ``in_progress -> abandoned``
is an external policy. Nothing leaves ``completed`` or ``abandoned``.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from ..infrastructure.exceptions import (
    AssessmentStateError,
    InvalidAnswerError,
    QuestionNotFoundError,
)
from .models import Assessment, CompanyInfo, Option, Question, Response, Result
from .services import ScoringService
from .traversal import TraversalEngine

if TYPE_CHECKING:
    from .catalog import Catalogs

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_assessment_id() -> str:
    """``assess_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"assess_{int(time.time() * 1000)}_{suffix}"


class AnswerHook(Protocol):
    def __call__(self, assessment: Assessment, question: Question, option: Option) -> None: ...


@dataclass(frozen=True, slots=True)
class CompanyInfoHook:
    """Copies the selected option's value of the size/sector intro questions into company info."""

    size_question_id: str
    sector_question_id: str

    def __call__(self, assessment: Assessment, question: Question, option: Option) -> None:
        if question.id == self.size_question_id:
            assessment.company_info.size = option.value
        elif question.id == self.sector_question_id:
            assessment.company_info.sector = option.value


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    assessment: Assessment
    response: Response
    next_question: Question | None

    @property
    def completed(self) -> bool:
        return self.next_question is None


class AssessmentWorkflow:
    def __init__(
        self,
        catalogs: Catalogs,
        traversal: TraversalEngine | None = None,
        scoring: ScoringService | None = None,
        hooks: Sequence[AnswerHook] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.catalogs = catalogs
        self.traversal = traversal or TraversalEngine(catalogs)
        self.scoring = scoring or ScoringService(catalogs)
        if hooks is None:
            hooks = [
                CompanyInfoHook(
                    size_question_id=catalogs.config.company_size_question_id,
                    sector_question_id=catalogs.config.sector_question_id,
                )
            ]
        self.hooks = list(hooks)
        self.logger = logger or logging.getLogger(__name__)

    def start(
        self,
        company_name: str | None = None,
        company_size: str | None = None,
        sector: str | None = None,
        assessment_id: str | None = None,
    ) -> Assessment:
        first = self.traversal.get_first_question()
        assessment = Assessment(
            id=assessment_id or generate_assessment_id(),
            company_info=CompanyInfo(name=company_name, size=company_size, sector=sector),
            current_question_id=first.id,
        )
        self.logger.info("Started assessment %s", assessment.id)
        return assessment

    def submit_answer(self, assessment: Assessment, question_id: str, answer_id: str) -> AnswerOutcome:
        """
        Record an answer and move the assessment forward.

        Any question of the bank may be (re)answered while the assessment is in
        progress; the prior response is replaced in place and traversal continues
        from the answered question.

        Raises:
            AssessmentStateError: If the assessment is not in progress
            QuestionNotFoundError: If ``question_id`` is not in the bank
            InvalidAnswerError: If ``answer_id`` is not among the question's options
        """
        if not assessment.is_in_progress:
            raise AssessmentStateError(assessment.id, str(assessment.status), "answer")

        question = self.catalogs.questions.get_question_by_id(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        validation = self.traversal.validate_response(question_id, answer_id)
        if not validation.valid or validation.option is None:
            raise InvalidAnswerError(question_id, answer_id)

        option = validation.option
        for hook in self.hooks:
            hook(assessment, question, option)

        response = Response.from_question_and_option(question, option)
        assessment.add_response(response)

        next_id = self.traversal.resolve_next(assessment, response)
        self.advance(assessment, next_id)
        return AnswerOutcome(
            assessment=assessment,
            response=response,
            next_question=self.catalogs.questions.get_question_by_id(next_id),
        )

    def advance(self, assessment: Assessment, next_question_id: str | None) -> None:
        if next_question_id is not None:
            assessment.update_current_question(next_question_id)
            return
        if not assessment.is_in_progress:
            raise AssessmentStateError(assessment.id, str(assessment.status), "complete")
        assessment.complete(self.scoring.calculate_scores(assessment))
        self.logger.info(
            "Completed assessment %s with global score %d",
            assessment.id,
            assessment.scores.global_score if assessment.scores else 0,
        )

    def recalculate(self, assessment: Assessment) -> Result:
        """Overwrite the stored result of a completed assessment."""
        if not assessment.is_completed:
            raise AssessmentStateError(assessment.id, str(assessment.status), "recalculate")
        result = self.scoring.calculate_scores(assessment)
        assessment.set_scores(result)
        return result

    def abandon(self, assessment: Assessment) -> None:
        if not assessment.is_in_progress:
            raise AssessmentStateError(assessment.id, str(assessment.status), "abandon")
        assessment.abandon()
        self.logger.info("Abandoned assessment %s", assessment.id)
