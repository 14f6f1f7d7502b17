from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from ..infrastructure.exceptions import DimensionNotFoundError, ProfileNotFoundError
from .models import (
    Assessment,
    Dimension,
    DimensionScore,
    Gap,
    MaturityProfile,
    Pillar,
    PillarScore,
    PriorityAction,
    Response,
    Result,
    ScoreLevel,
    Strength,
)

if TYPE_CHECKING:
    from .catalog import Catalogs

CRITICAL_THRESHOLD = 40
TREND_THRESHOLD = 5


def round_half_up(value: float) -> int:
    """Round .5 upwards like ``Math.round`` (Python's ``round`` is banker's rounding)."""
    return int(math.floor(value + 0.5))


def percentage(points: float, max_points: float) -> int:
    if not max_points:
        return 0
    return round_half_up(points / max_points * 100)


def score_level(value: int) -> ScoreLevel:
    if value >= 76:
        return "excellent"
    if value >= 51:
        return "good"
    if value >= 26:
        return "moderate"
    return "low"


class ScoringService:
    """
    Pure scoring over an assessment's responses and the dimension catalog.

    - Pillar points are the sum of matching scored responses, capped at the
      pillar's max score; the excess is discarded.
    - Dimension percentage = capped pillar points / sum of pillar max scores.
    - Global score = rounded unweighted mean of the dimension percentages over
      the fixed dimension count (a dimension without responses counts as 0%).
    """

    def __init__(self, catalogs: Catalogs, logger: logging.Logger | None = None):
        self.catalogs = catalogs
        self.config = catalogs.config
        self.logger = logger or logging.getLogger(__name__)

    def calculate_scores(self, assessment: Assessment) -> Result:
        dimension_scores = tuple(
            self.calculate_dimension_score(dimension, assessment.responses)
            for dimension in self.catalogs.dimensions.get_dimensions()
        )
        global_score = self.calculate_global_score(dimension_scores)
        profile = self.determine_maturity_profile(global_score)
        strengths, gaps, priority_actions = self.analyze_scores(dimension_scores)

        self.logger.info(
            "Calculated scores for assessment %s: global=%d profile=%s",
            assessment.id,
            global_score,
            profile.id,
        )
        return Result(
            assessment_id=assessment.id,
            global_score=global_score,
            maturity_profile=profile,
            dimension_scores=dimension_scores,
            strengths=strengths,
            gaps=gaps,
            priority_actions=priority_actions,
        )

    def calculate_pillar_score(
        self, dimension_id: str, pillar: Pillar, responses: Iterable[Response]
    ) -> PillarScore:
        matching = [
            r
            for r in responses
            if r.dimension == dimension_id and r.pillar == pillar.id and r.score is not None
        ]
        points = min(sum(r.score for r in matching if r.score is not None), pillar.max_score)
        return PillarScore(
            pillar_id=pillar.id,
            pillar_name=pillar.name,
            points=points,
            max_points=pillar.max_score,
            percentage=percentage(points, pillar.max_score),
            response_count=len(matching),
        )

    def calculate_dimension_score(
        self, dimension: Dimension, responses: Sequence[Response]
    ) -> DimensionScore:
        pillar_scores = tuple(
            self.calculate_pillar_score(dimension.id, pillar, responses)
            for pillar in dimension.pillars
        )
        total_points = sum(p.points for p in pillar_scores)
        max_points = sum(p.max_points for p in pillar_scores)
        return DimensionScore(
            dimension_id=dimension.id,
            dimension_name=dimension.name,
            description=dimension.description,
            total_points=total_points,
            max_points=max_points,
            percentage=percentage(total_points, max_points),
            pillar_scores=pillar_scores,
        )

    def calculate_global_score(self, dimension_scores: Sequence[DimensionScore]) -> int:
        total = sum(d.percentage for d in dimension_scores)
        return round_half_up(total / self.config.dimension_count)

    def determine_maturity_profile(self, global_score: int) -> MaturityProfile:
        for profile in self.catalogs.dimensions.get_maturity_profiles():
            if profile.contains(global_score):
                return profile
        raise ProfileNotFoundError(global_score)

    def analyze_scores(
        self, dimension_scores: Sequence[DimensionScore]
    ) -> tuple[tuple[Strength, ...], tuple[Gap, ...], tuple[PriorityAction, ...]]:
        """Top two dimensions are strengths, bottom two are gaps (stable on ties)."""
        ordered = sorted(dimension_scores, key=lambda d: d.percentage, reverse=True)

        strengths = tuple(
            Strength(
                dimension_id=d.dimension_id,
                dimension_name=d.dimension_name,
                percentage=d.percentage,
                level=score_level(d.percentage),
            )
            for d in ordered[:2]
        )
        gaps = tuple(
            Gap(
                dimension_id=d.dimension_id,
                dimension_name=d.dimension_name,
                percentage=d.percentage,
                level=score_level(d.percentage),
                improvement_potential=100 - d.percentage,
            )
            for d in ordered[-2:]
        )
        return strengths, gaps, self.identify_priority_actions(gaps, dimension_scores)

    def identify_priority_actions(
        self, gaps: Sequence[Gap], dimension_scores: Sequence[DimensionScore]
    ) -> tuple[PriorityAction, ...]:
        by_id = {d.dimension_id: d for d in dimension_scores}
        actions: list[PriorityAction] = []
        for gap in gaps:
            dimension = by_id.get(gap.dimension_id)
            if dimension is None or not dimension.pillar_scores:
                continue
            # min() keeps the first pillar in declaration order on ties
            weakest = min(dimension.pillar_scores, key=lambda p: p.percentage)
            if gap.percentage < 25:
                priority = "high"
            elif gap.percentage < 50:
                priority = "medium"
            else:
                priority = "low"
            actions.append(
                PriorityAction(
                    dimension_id=gap.dimension_id,
                    dimension_name=gap.dimension_name,
                    pillar_id=weakest.pillar_id,
                    pillar_name=weakest.pillar_name,
                    current_score=weakest.percentage,
                    priority=priority,
                )
            )
        return tuple(actions)

    def calculate_progress_score(self, responses: Iterable[Response]) -> int:
        """Provisional score over the scored responses so far; 0 before any scored answer."""
        scored = [r.score for r in responses if r.score is not None]
        if not scored:
            return 0
        return percentage(sum(scored), len(scored) * self.config.max_pillar_score)

    # ------------------------------------------------------------------
    # Result read models
    # ------------------------------------------------------------------

    def summarize(self, result: Result) -> dict[str, Any]:
        scores = list(result.dimension_scores)
        descending = sorted(scores, key=lambda d: d.percentage, reverse=True)
        ascending = sorted(scores, key=lambda d: d.percentage)

        distribution = {"excellent": 0, "good": 0, "moderate": 0, "low": 0}
        for d in scores:
            distribution[score_level(d.percentage)] += 1

        return {
            "global_score": result.global_score,
            "overall_level": score_level(result.global_score),
            "profile_name": result.maturity_profile.name,
            "profile_color": result.maturity_profile.color,
            "avg_dimension_score": (
                round_half_up(sum(d.percentage for d in scores) / len(scores)) if scores else 0
            ),
            "distribution": distribution,
            "top_dimensions": [
                {"dimension_id": d.dimension_id, "name": d.dimension_name, "score": d.percentage}
                for d in descending[:3]
            ],
            "areas_for_improvement": [
                {
                    "dimension_id": d.dimension_id,
                    "name": d.dimension_name,
                    "score": d.percentage,
                    "potential": 100 - d.percentage,
                }
                for d in ascending[:3]
            ],
            "critical_count": sum(1 for d in scores if d.percentage < CRITICAL_THRESHOLD),
            "improvement_potential": 100 - result.global_score,
            "recommendations_count": len(result.maturity_profile.recommendations),
            "priority_actions_count": len(result.priority_actions),
        }

    def compare_results(self, current: Result, previous: Result) -> dict[str, Any]:
        change = current.global_score - previous.global_score
        dimension_changes = []
        for d in current.dimension_scores:
            before = previous.get_dimension_score(d.dimension_id)
            if before is None:
                continue
            dimension_changes.append(
                {
                    "dimension_id": d.dimension_id,
                    "dimension_name": d.dimension_name,
                    "change": d.percentage - before.percentage,
                    "previous_score": before.percentage,
                    "current_score": d.percentage,
                }
            )

        if change > TREND_THRESHOLD:
            trend = "improving"
        elif change < -TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"

        return {
            "global_score_change": change,
            "profile_changed": current.maturity_profile.id != previous.maturity_profile.id,
            "dimension_changes": dimension_changes,
            "improvement_trend": trend,
        }

    def dimension_details(
        self, result: Result, assessment: Assessment, dimension_id: str
    ) -> dict[str, Any]:
        score = result.get_dimension_score(dimension_id)
        if score is None:
            raise DimensionNotFoundError(dimension_id)

        pillars = list(score.pillar_scores)
        return {
            "dimension": score,
            "level": score_level(score.percentage),
            "responses": assessment.responses_by_dimension(dimension_id),
            "weakest_pillar": min(pillars, key=lambda p: p.percentage) if pillars else None,
            "strongest_pillar": (
                max(pillars, key=lambda p: p.percentage) if pillars else None
            ),
        }
