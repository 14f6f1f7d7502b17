from __future__ import annotations

import io
import json
import zipfile
from dataclasses import replace

import pandas as pd
import plotly.graph_objects as go
import pytest

from app.utils.exports import (
    PILLAR_COLUMNS,
    make_csv_export_bytes,
    make_json_export_payload,
    make_xlsx_export_bytes,
    pillar_scores_frame,
    responses_frame,
)
from app.utils.maturity_radar import gradient_color, make_maturity_radar, radar_frame


@pytest.fixture
def completed(workflow, answer_all):
    return answer_all(workflow, workflow.start(company_name="Acme"))


def test_pillar_scores_frame(completed):
    frame = pillar_scores_frame(completed.scores)
    assert list(frame.columns) == PILLAR_COLUMNS
    assert len(frame) == 24
    assert frame["PillarPercentage"].eq(100).all()
    vision = frame[(frame["DimensionID"] == "strategy") & (frame["PillarID"] == "vision")].iloc[0]
    # two vision answers, capped at the pillar maximum
    assert vision["Points"] == 9
    assert vision["Responses"] == 2


def test_responses_frame(completed):
    frame = responses_frame(completed)
    assert len(frame) == len(completed.responses)
    assert frame.iloc[0]["QuestionID"] == "intro_company_size"


def test_json_payload_serialises(completed, catalogs):
    payload = make_json_export_payload(completed, completed.scores, catalogs)
    decoded = json.loads(json.dumps(payload))

    assert decoded["company"]["name"] == "Acme"
    assert decoded["global_score"] == 100
    assert decoded["maturity_profile"]["id"] == "leader"
    assert decoded["strengths"] == ["strategy", "culture"]
    intro = decoded["responses"][0]
    assert intro["score"] is None
    assert isinstance(intro["answered_at"], str)


def test_csv_export(completed):
    frame = pd.read_csv(io.BytesIO(make_csv_export_bytes(completed.scores)))
    assert list(frame.columns) == PILLAR_COLUMNS
    assert frame["Points"].sum() == 24 * 9


def test_xlsx_export_has_three_sheets(completed):
    content = make_xlsx_export_bytes(completed, completed.scores)
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        workbook = archive.read("xl/workbook.xml").decode("utf-8")
    for sheet in ("Summary", "Pillars", "Responses"):
        assert f'name="{sheet}"' in workbook


def test_gradient_color_bounds():
    assert gradient_color(-5) == "#EF4444"
    assert gradient_color(0) == "#EF4444"
    assert gradient_color(100) == "#10B981"
    assert gradient_color(120) == "#10B981"
    assert gradient_color(50) == "#FEE08B"


def test_radar_figure(completed, catalogs):
    dimensions = catalogs.dimensions.get_dimensions()
    frame = radar_frame(completed.scores)
    assert len(frame) == 24

    fig = make_maturity_radar(completed.scores, dimensions, title="Acme")
    assert isinstance(fig, go.Figure)
    assert fig.layout.title.text == "Acme"
    # outline, markers and one mini bar per pillar
    assert len(fig.data) >= 2 + 24


def test_radar_rejects_unknown_dimension(completed, catalogs):
    dimensions = catalogs.dimensions.get_dimensions()
    renamed = [replace(dimensions[0], name="Finance")]
    with pytest.raises(ValueError):
        make_maturity_radar(completed.scores, renamed)
