"""
Repository entry point.

Re-exports the persistence collaborators so callers can write
``from app.infrastructure.repositories import AssessmentRepo``.
"""

from __future__ import annotations

from .repositories_assessment import (
    AssessmentRepo,
    assessment_adapter,
    assessment_from_record,
    assessment_to_record,
)
from .repositories_base import BaseRepository

# Tell linters/formatters these imports are intentional (exported API)
__all__ = [
    "AssessmentRepo",
    "BaseRepository",
    "assessment_adapter",
    "assessment_from_record",
    "assessment_to_record",
]
