from __future__ import annotations

import io
from typing import Any

import pandas as pd

from app.domain.catalog import Catalogs
from app.domain.models import Assessment, Result

PILLAR_COLUMNS = [
    "DimensionID",
    "Dimension",
    "DimensionPercentage",
    "PillarID",
    "Pillar",
    "Points",
    "MaxPoints",
    "PillarPercentage",
    "Responses",
]


def _to_iso(val):
    if hasattr(val, "isoformat"):
        try:
            return val.isoformat()
        except Exception:
            return str(val)
    return val


def pillar_scores_frame(result: Result) -> pd.DataFrame:
    """One row per pillar of every dimension, in catalog order."""
    rows = [
        {
            "DimensionID": dim.dimension_id,
            "Dimension": dim.dimension_name,
            "DimensionPercentage": dim.percentage,
            "PillarID": pillar.pillar_id,
            "Pillar": pillar.pillar_name,
            "Points": pillar.points,
            "MaxPoints": pillar.max_points,
            "PillarPercentage": pillar.percentage,
            "Responses": pillar.response_count,
        }
        for dim in result.dimension_scores
        for pillar in dim.pillar_scores
    ]
    return pd.DataFrame(rows, columns=PILLAR_COLUMNS)


def responses_frame(assessment: Assessment) -> pd.DataFrame:
    columns = ["QuestionID", "AnswerID", "Answer", "Dimension", "Pillar", "Score", "AnsweredAt"]
    rows = [
        {
            "QuestionID": r.question_id,
            "AnswerID": r.answer_id,
            "Answer": r.answer_text,
            "Dimension": r.dimension,
            "Pillar": r.pillar,
            "Score": r.score,
            "AnsweredAt": r.answered_at,
        }
        for r in assessment.responses
    ]
    return pd.DataFrame(rows, columns=columns)


def make_json_export_payload(
    assessment: Assessment, result: Result, catalogs: Catalogs
) -> dict[str, Any]:
    profile = result.maturity_profile
    info = assessment.company_info
    return {
        "assessment_id": assessment.id,
        "company": {"name": info.name, "size": info.size, "sector": info.sector},
        "completed_at": _to_iso(assessment.completed_at),
        "calculated_at": _to_iso(result.calculated_at),
        "global_score": result.global_score,
        "maturity_profile": {
            "id": profile.id,
            "name": profile.name,
            "description": profile.description,
            "recommendations": list(profile.recommendations),
        },
        "dimensions": pillar_scores_frame(result).to_dict(orient="records"),
        "strengths": [s.dimension_id for s in result.strengths],
        "gaps": [g.dimension_id for g in result.gaps],
        "priority_actions": [
            {
                "dimension": a.dimension_id,
                "pillar": a.pillar_id,
                "current_score": a.current_score,
                "priority": a.priority,
            }
            for a in result.priority_actions
        ],
        # built directly: a frame would turn missing scores into NaN
        "responses": [
            {
                "question_id": r.question_id,
                "answer_id": r.answer_id,
                "answer": r.answer_text,
                "dimension": r.dimension,
                "pillar": r.pillar,
                "score": r.score,
                "answered_at": _to_iso(r.answered_at),
            }
            for r in assessment.responses
        ],
        "question_count": len(catalogs.questions),
    }


def make_csv_export_bytes(result: Result) -> bytes:
    return pillar_scores_frame(result).to_csv(index=False).encode("utf-8")


def make_xlsx_export_bytes(assessment: Assessment, result: Result) -> bytes:
    """Workbook with a one-row Summary sheet, the Pillars breakdown and the raw Responses."""
    summary = pd.DataFrame(
        [
            {
                "AssessmentID": assessment.id,
                "Company": assessment.company_info.name,
                "Size": assessment.company_info.size,
                "Sector": assessment.company_info.sector,
                "GlobalScore": result.global_score,
                "Profile": result.maturity_profile.name,
                "CompletedAt": _to_iso(assessment.completed_at),
            }
        ]
    )
    responses = responses_frame(assessment)
    responses["AnsweredAt"] = responses["AnsweredAt"].map(_to_iso)

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        summary.to_excel(writer, index=False, sheet_name="Summary")
        pillar_scores_frame(result).to_excel(writer, index=False, sheet_name="Pillars")
        responses.to_excel(writer, index=False, sheet_name="Responses")
    return bio.getvalue()
