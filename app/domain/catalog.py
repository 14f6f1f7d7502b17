"""
Static question bank and dimension catalog.

Both catalogs are immutable, loaded once through :func:`initialize` and passed
explicitly to the engines. Structural problems are reported as
``ConfigurationError`` at load time rather than on individual requests.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..infrastructure.config import CatalogConfig
from ..infrastructure.exceptions import (
    ConfigurationError,
    DimensionNotFoundError,
    QuestionNotFoundError,
)
from ..infrastructure.logging import get_logger
from .models import Dimension, MaturityProfile, Question, QuestionKind, ScoredQuestion
from .schemas import DimensionCatalogFile, QuestionBankFile

logger = get_logger(__name__)


class QuestionBank:
    """Read-only catalog of questions keyed by id, in declaration order."""

    def __init__(self, questions: list[Question], entry_question_id: str):
        self._questions: dict[str, Question] = {}
        duplicates = [qid for qid, n in Counter(q.id for q in questions).items() if n > 1]
        if duplicates:
            raise ConfigurationError(
                f"Duplicate question ids: {', '.join(sorted(duplicates))}",
                config_key="questions",
            )
        for question in questions:
            self._questions[question.id] = question
        self.entry_question_id = entry_question_id

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._questions

    def all_questions(self) -> list[Question]:
        return list(self._questions.values())

    def get_question_by_id(self, question_id: str | None) -> Question | None:
        if question_id is None:
            return None
        return self._questions.get(question_id)

    def get_question_required(self, question_id: str) -> Question:
        question = self.get_question_by_id(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    def get_questions_by_dimension(self, dimension_id: str) -> list[Question]:
        return [q for q in self._questions.values() if q.dimension == dimension_id]

    def get_questions_by_pillar(self, dimension_id: str, pillar_id: str) -> list[Question]:
        return [
            q
            for q in self._questions.values()
            if q.dimension == dimension_id and q.pillar == pillar_id
        ]

    def get_questions_by_type(self, kind: QuestionKind | str) -> list[Question]:
        return [q for q in self._questions.values() if q.kind == kind]

    def get_entry_question(self) -> Question:
        if not self._questions:
            raise ConfigurationError("Question bank is empty", config_key="questions")
        question = self._questions.get(self.entry_question_id)
        if question is None:
            raise QuestionNotFoundError(self.entry_question_id)
        return question

    def default_path_length(self, start_id: str | None = None) -> int:
        """Number of questions met by following default links from ``start_id`` (entry point by default)."""
        seen: set[str] = set()
        current = self.get_question_by_id(start_id or self.entry_question_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            current = self.get_question_by_id(current.default_next)
        return len(seen)

    def statistics(self, dimensions: list[Dimension]) -> dict[str, Any]:
        questions = self.all_questions()
        by_type = Counter(str(q.kind) for q in questions)
        by_dimension: dict[str, Any] = {}
        for dimension in dimensions:
            by_dimension[dimension.id] = {
                "name": dimension.name,
                "count": len(self.get_questions_by_dimension(dimension.id)),
                "by_pillar": {
                    pillar.id: len(self.get_questions_by_pillar(dimension.id, pillar.id))
                    for pillar in dimension.pillars
                },
            }
        total_options = sum(len(q.options) for q in questions)
        return {
            "total": len(questions),
            "by_type": dict(by_type),
            "by_dimension": by_dimension,
            "avg_options_per_question": (
                round(total_options / len(questions), 1) if questions else 0.0
            ),
        }


class DimensionCatalog:
    """Read-only catalog of dimensions and the ordered maturity-profile table."""

    def __init__(self, dimensions: list[Dimension], maturity_profiles: list[MaturityProfile]):
        self._dimensions = tuple(dimensions)
        self._profiles = tuple(sorted(maturity_profiles, key=lambda p: p.min_score))

    def get_dimensions(self) -> list[Dimension]:
        return list(self._dimensions)

    def get_dimension(self, dimension_id: str) -> Dimension | None:
        return next((d for d in self._dimensions if d.id == dimension_id), None)

    def get_dimension_required(self, dimension_id: str) -> Dimension:
        dimension = self.get_dimension(dimension_id)
        if dimension is None:
            raise DimensionNotFoundError(dimension_id)
        return dimension

    def get_maturity_profiles(self) -> list[MaturityProfile]:
        return list(self._profiles)


@dataclass(frozen=True, slots=True)
class Catalogs:
    questions: QuestionBank
    dimensions: DimensionCatalog
    config: CatalogConfig


def _read_json(path: str, config_key: str) -> Any:
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Catalog file not found: {path}", config_key=config_key)
    try:
        return json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Catalog file {path} is not valid JSON: {e}", config_key=config_key
        ) from e


def validate_profile_table(profiles: list[MaturityProfile]) -> None:
    """The ordered profile ranges must partition [0, 100] without gaps or overlaps."""
    if not profiles:
        raise ConfigurationError("No maturity profiles defined", config_key="maturityProfiles")
    ordered = sorted(profiles, key=lambda p: p.min_score)
    expected = 0
    for profile in ordered:
        if profile.min_score != expected:
            kind = "gap" if profile.min_score > expected else "overlap"
            raise ConfigurationError(
                f"Maturity profile table has a {kind} at score {expected} "
                f"(profile {profile.id} starts at {profile.min_score})",
                config_key="maturityProfiles",
            )
        expected = profile.max_score + 1
    if expected != 101:
        raise ConfigurationError(
            f"Maturity profile table ends at {expected - 1} instead of 100",
            config_key="maturityProfiles",
        )


def validate_catalogs(
    questions: QuestionBank, dimensions: DimensionCatalog, config: CatalogConfig
) -> list[str]:
    """
    Check cross-catalog invariants.

    Raises ``ConfigurationError`` on structural faults and returns the list of
    non-fatal warnings (dangling links, pillars without questions).
    """
    dims = dimensions.get_dimensions()
    if len(dims) != config.dimension_count:
        raise ConfigurationError(
            f"Expected {config.dimension_count} dimensions, found {len(dims)}",
            config_key="dimensions",
        )
    for dimension in dims:
        if len(dimension.pillars) != config.pillars_per_dimension:
            raise ConfigurationError(
                f"Dimension {dimension.id} has {len(dimension.pillars)} pillars, "
                f"expected {config.pillars_per_dimension}",
                config_key="dimensions",
            )
    validate_profile_table(dimensions.get_maturity_profiles())

    if len(questions) == 0:
        raise ConfigurationError("Question bank is empty", config_key="questions")
    if config.entry_question_id not in questions:
        raise ConfigurationError(
            f"Entry question {config.entry_question_id} not found", config_key="entry_question_id"
        )

    pillars_by_dimension = {d.id: set(d.pillar_ids()) for d in dims}
    warnings: list[str] = []
    for question in questions.all_questions():
        if question.dimension is not None:
            pillars = pillars_by_dimension.get(question.dimension)
            if pillars is None:
                raise ConfigurationError(
                    f"Question {question.id} references unknown dimension {question.dimension}",
                    config_key="questions",
                )
            if question.pillar is not None and question.pillar not in pillars:
                raise ConfigurationError(
                    f"Question {question.id} references unknown pillar "
                    f"{question.dimension}/{question.pillar}",
                    config_key="questions",
                )
        targets = [question.default_next, *question.conditional_next.values()]
        for target in targets:
            if target is not None and target not in questions:
                warnings.append(f"Question {question.id} links to unknown question {target}")

    for dimension in dims:
        for pillar in dimension.pillars:
            scored = [
                q
                for q in questions.get_questions_by_pillar(dimension.id, pillar.id)
                if isinstance(q, ScoredQuestion)
            ]
            if not scored:
                warnings.append(f"Pillar {dimension.id}/{pillar.id} has no scored question")

    return warnings


def load_question_bank(config: CatalogConfig) -> QuestionBank:
    raw = _read_json(config.questions_path, "questions_path")
    try:
        parsed = QuestionBankFile.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid question bank {config.questions_path}: {e}", config_key="questions_path"
        ) from e
    return QuestionBank([q.to_domain() for q in parsed.questions], config.entry_question_id)


def load_dimension_catalog(config: CatalogConfig) -> DimensionCatalog:
    raw = _read_json(config.dimensions_path, "dimensions_path")
    try:
        parsed = DimensionCatalogFile.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid dimension catalog {config.dimensions_path}: {e}",
            config_key="dimensions_path",
        ) from e
    return DimensionCatalog(
        [d.to_domain() for d in parsed.dimensions],
        [p.to_domain() for p in parsed.maturity_profiles],
    )


def initialize(config: CatalogConfig | None = None) -> Catalogs:
    """
    Load and validate both catalogs.

    Args:
        config: Catalog settings (defaults to ``CatalogConfig()`` from the environment)

    Returns:
        Catalogs bundle to inject into the traversal and scoring engines

    Raises:
        ConfigurationError: If a file is missing, malformed or structurally invalid

    Example:
        >>> catalogs = initialize()
        >>> catalogs.questions.get_entry_question().id
        'intro_company_size'
    """
    config = config or CatalogConfig()
    questions = load_question_bank(config)
    dimensions = load_dimension_catalog(config)
    warnings = validate_catalogs(questions, dimensions, config)
    for warning in warnings:
        logger.warning(warning)
    logger.info(
        "Loaded %d questions across %d dimensions and %d maturity profiles",
        len(questions),
        len(dimensions.get_dimensions()),
        len(dimensions.get_maturity_profiles()),
    )
    return Catalogs(questions=questions, dimensions=dimensions, config=config)
