"""
Pydantic schemas for input validation and catalog file loading.

Request payloads are sanitised before they reach the engine; catalog files
are validated once at startup and converted into the immutable domain types.
"""

from __future__ import annotations

import re
from html import unescape
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import (
    ConditionalQuestion,
    Dimension,
    IntroQuestion,
    MaturityProfile,
    Option,
    Pillar,
    Question,
    ScoredQuestion,
)

ASSESSMENT_ID_PATTERN = r"^assess_[A-Za-z0-9_]+$"
IDENTIFIER_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_\-]*$"


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        """Sanitize string inputs to prevent XSS and injection attacks."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
            cleaned = re.sub(r"\bon\w+\s*=", "", cleaned, flags=re.IGNORECASE)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


class StartAssessmentInput(BaseValidationSchema):
    """Validation schema for starting an assessment."""

    company_name: str | None = Field(None, max_length=100)
    company_size: str | None = Field(None, max_length=50)
    sector: str | None = Field(None, max_length=50)

    @field_validator("company_name", "company_size", "sector")
    def empty_to_none(cls, v):
        if v is not None and len(v.strip()) == 0:
            return None
        return v


class AnswerSubmissionInput(BaseValidationSchema):
    """Validation schema for a submitted answer."""

    question_id: str = Field(..., min_length=1, max_length=100)
    answer_id: str = Field(..., min_length=1, max_length=100)

    @field_validator("question_id", "answer_id")
    def validate_identifier(cls, v):
        if not re.match(IDENTIFIER_PATTERN, v):
            raise ValueError("Identifier contains invalid characters")
        return v


class AssessmentIdInput(BaseValidationSchema):
    """Validation schema for assessment ids carried in paths."""

    assessment_id: str = Field(..., min_length=8, max_length=100, pattern=ASSESSMENT_ID_PATTERN)


# ---------------------------------------------------------------------------
# Catalog files
# ---------------------------------------------------------------------------


class OptionSchema(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    value: Any = None
    score: int | None = Field(None, ge=0)

    def to_domain(self) -> Option:
        return Option(id=self.id, text=self.text, value=self.value, score=self.score)


class QuestionSchema(BaseModel):
    """One entry of ``questions.json``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: Literal["intro", "scored", "conditional"]
    text: str = Field(..., min_length=1)
    dimension: str | None = None
    pillar: str | None = None
    options: list[OptionSchema] = Field(..., min_length=1)
    next_question: str | None = Field(None, alias="nextQuestion")
    conditional_next: dict[str, str] = Field(default_factory=dict, alias="conditionalNext")

    @model_validator(mode="after")
    def validate_by_type(self):
        """Enforce the per-variant shape of a question."""
        if self.type == "intro":
            if self.dimension is not None or self.pillar is not None:
                raise ValueError(f"Intro question {self.id} cannot carry a dimension or pillar")
            if any(option.score is not None for option in self.options):
                raise ValueError(f"Intro question {self.id} cannot carry option scores")
        elif self.type == "scored":
            if not self.dimension or not self.pillar:
                raise ValueError(f"Scored question {self.id} requires a dimension and a pillar")
            unscored = [option.id for option in self.options if option.score is None]
            if unscored:
                raise ValueError(
                    f"Scored question {self.id} has options without score: {', '.join(unscored)}"
                )
        else:
            if not self.conditional_next:
                raise ValueError(f"Conditional question {self.id} requires conditional links")
            if any(option.score is not None for option in self.options):
                raise ValueError(f"Conditional question {self.id} cannot carry option scores")

        option_ids = [option.id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError(f"Question {self.id} has duplicate option ids")
        unknown = set(self.conditional_next) - set(option_ids)
        if unknown:
            raise ValueError(
                f"Question {self.id} has conditional links for unknown options: "
                f"{', '.join(sorted(unknown))}"
            )
        return self

    def to_domain(self) -> Question:
        options = tuple(option.to_domain() for option in self.options)
        conditional_next = dict(self.conditional_next)
        match self.type:
            case "intro":
                return IntroQuestion(
                    id=self.id,
                    text=self.text,
                    options=options,
                    default_next=self.next_question,
                    conditional_next=conditional_next,
                )
            case "scored":
                return ScoredQuestion(
                    id=self.id,
                    text=self.text,
                    dimension=self.dimension,
                    pillar=self.pillar,
                    options=options,
                    default_next=self.next_question,
                    conditional_next=conditional_next,
                )
            case "conditional":
                return ConditionalQuestion(
                    id=self.id,
                    text=self.text,
                    options=options,
                    conditional_next=conditional_next,
                    default_next=self.next_question,
                    dimension=self.dimension,
                    pillar=self.pillar,
                )


class QuestionBankFile(BaseModel):
    questions: list[QuestionSchema]


class PillarSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    max_score: int = Field(9, ge=1, alias="maxScore")

    def to_domain(self) -> Pillar:
        return Pillar(id=self.id, name=self.name, max_score=self.max_score)


class DimensionSchema(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    color: str = Field("#6b7280", pattern=r"^#[0-9A-Fa-f]{6}$")
    pillars: list[PillarSchema]

    def to_domain(self) -> Dimension:
        return Dimension(
            id=self.id,
            name=self.name,
            description=self.description,
            pillars=tuple(pillar.to_domain() for pillar in self.pillars),
            color=self.color,
        )


class MaturityProfileSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    min_score: int = Field(..., ge=0, le=100, alias="minScore")
    max_score: int = Field(..., ge=0, le=100, alias="maxScore")
    recommendations: list[str] = Field(default_factory=list)
    color: str = Field("#6b7280", pattern=r"^#[0-9A-Fa-f]{6}$")

    @model_validator(mode="after")
    def validate_range(self):
        if self.min_score > self.max_score:
            raise ValueError(f"Profile {self.id} has minScore greater than maxScore")
        return self

    def to_domain(self) -> MaturityProfile:
        return MaturityProfile(
            id=self.id,
            name=self.name,
            description=self.description,
            min_score=self.min_score,
            max_score=self.max_score,
            recommendations=tuple(self.recommendations),
            color=self.color,
        )


class DimensionCatalogFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dimensions: list[DimensionSchema]
    maturity_profiles: list[MaturityProfileSchema] = Field(..., alias="maturityProfiles")


# ---------------------------------------------------------------------------
# Structured validation results
# ---------------------------------------------------------------------------


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(AnswerSubmissionInput, {"question_id": "intro_sector"})
        >>> if not result.success:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):  # Pydantic validation errors
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
