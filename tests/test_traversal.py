from __future__ import annotations

import logging

import pytest

from app.domain.catalog import Catalogs, QuestionBank
from app.domain.models import (
    Assessment,
    CompanyInfo,
    End,
    Fallback,
    Option,
    QuestionKind,
    Resolved,
    Response,
    ScoredQuestion,
)
from app.domain.traversal import TraversalEngine
from app.infrastructure.exceptions import QuestionNotFoundError


def answered(question_id: str, answer_id: str, catalogs: Catalogs) -> Response:
    question = catalogs.questions.get_question_required(question_id)
    option = next(o for o in question.options if o.id == answer_id)
    return Response.from_question_and_option(question, option)


@pytest.fixture
def engine(catalogs: Catalogs) -> TraversalEngine:
    return TraversalEngine(catalogs)


@pytest.fixture
def dangling_catalogs(catalogs: Catalogs) -> Catalogs:
    opts = (Option(id="a", text="A", score=3), Option(id="b", text="B", score=6))
    bank = QuestionBank(
        [
            ScoredQuestion(
                id="q1",
                text="First",
                dimension="strategy",
                pillar="vision",
                options=opts,
                default_next="q2",
                conditional_next={"a": "missing"},
            ),
            ScoredQuestion(
                id="q2",
                text="Second",
                dimension="strategy",
                pillar="objectives",
                options=opts,
                default_next=None,
                conditional_next={"a": "ghost"},
            ),
            ScoredQuestion(
                id="q3",
                text="Third",
                dimension="strategy",
                pillar="budget",
                options=opts,
                default_next="nowhere",
            ),
        ],
        entry_question_id="q1",
    )
    return Catalogs(bank, catalogs.dimensions, catalogs.config)


def test_first_question_is_entry_point(engine: TraversalEngine):
    assert engine.get_first_question().id == "intro_company_size"


def test_validate_response_returns_matching_option(engine: TraversalEngine, catalogs: Catalogs):
    for question in catalogs.questions.all_questions():
        for option in question.options:
            result = engine.validate_response(question.id, option.id)
            assert result.valid
            assert result.option is option


def test_validate_response_failures(engine: TraversalEngine):
    unknown_answer = engine.validate_response("strategy_vision_1", "maybe")
    assert not unknown_answer.valid
    assert unknown_answer.error == "Invalid answer option"

    unknown_question = engine.validate_response("nope", "none")
    assert not unknown_question.valid
    assert unknown_question.error == "Question not found"


def test_conditional_link_wins_over_default(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x")
    response = answered("strategy_vision_1", "strategic", catalogs)
    assert engine.resolve_next(assessment, response) == "strategy_vision_2"

    response = answered("strategy_vision_1", "documented", catalogs)
    assert engine.resolve_next(assessment, response) == "strategy_objectives_1"


def test_conditional_routing_question(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x")
    yes = answered("technology_cloud_usage", "yes", catalogs)
    no = answered("technology_cloud_usage", "no", catalogs)
    assert engine.resolve_next(assessment, yes) == "technology_cloud_1"
    assert engine.resolve_next(assessment, no) == "technology_cloud_2"
    assert yes.score is None and yes.dimension is None


def test_last_question_ends_assessment(engine: TraversalEngine, catalogs: Catalogs):
    response = answered("security_awareness_1", "optimized", catalogs)
    assert engine.resolve_next(Assessment(id="assess_1_x"), response) is None


def test_unknown_question_raises(engine: TraversalEngine):
    response = Response(question_id="ghost", answer_id="a", answer_text="A")
    with pytest.raises(QuestionNotFoundError):
        engine.resolve_next(Assessment(id="assess_1_x"), response)


def test_dangling_conditional_falls_back_to_default(dangling_catalogs: Catalogs, caplog):
    engine = TraversalEngine(dangling_catalogs, logger=logging.getLogger("tests.traversal"))
    q1 = dangling_catalogs.questions.get_question_required("q1")

    assert engine.conditional_link(q1, "a") == Fallback(
        reason="dangling_conditional_link", target="missing"
    )
    with caplog.at_level(logging.WARNING, logger="tests.traversal"):
        step = engine.resolve_link(q1, "a")
    assert step == Resolved(question_id="q2", via="default")
    assert "dangling" in caplog.text

    response = Response(question_id="q1", answer_id="a", answer_text="A", score=3)
    assert engine.resolve_next(Assessment(id="assess_1_x"), response) == "q2"


def test_dangling_conditional_without_default_ends(dangling_catalogs: Catalogs):
    engine = TraversalEngine(dangling_catalogs)
    response = Response(question_id="q2", answer_id="a", answer_text="A", score=3)
    assert engine.resolve_next(Assessment(id="assess_1_x"), response) is None


def test_dangling_default_ends(dangling_catalogs: Catalogs):
    engine = TraversalEngine(dangling_catalogs)
    q3 = dangling_catalogs.questions.get_question_required("q3")
    assert engine.default_link(q3) == End(reason="dangling_default_link", target="nowhere")
    response = Response(question_id="q3", answer_id="b", answer_text="B", score=6)
    assert engine.resolve_next(Assessment(id="assess_1_x"), response) is None


def test_format_question_personalizes_text(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x", company_info=CompanyInfo(name="Acme"))
    question = catalogs.questions.get_question_required("strategy_vision_1")

    view = engine.format_question(question, assessment)
    assert view.text == "Does Acme have a defined digital vision?"
    assert view.kind == QuestionKind.SCORED
    assert view.is_scored
    assert view.has_conditional_logic
    assert not view.is_last_question

    anonymous = engine.format_question(question, Assessment(id="assess_1_y"))
    assert "your company" in anonymous.text


def test_format_routing_question_is_not_scored(engine: TraversalEngine, catalogs: Catalogs):
    view = engine.format_question(catalogs.questions.get_question_required("technology_cloud_usage"))
    assert view.kind == QuestionKind.CONDITIONAL
    assert not view.is_scored
    assert view.dimension is None

    last = engine.format_question(catalogs.questions.get_question_required("security_awareness_1"))
    assert last.is_last_question


def test_dimension_progress_counts_unique_pillars(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x")
    assessment.add_response(answered("strategy_vision_1", "strategic", catalogs))
    assessment.add_response(answered("strategy_vision_2", "yearly", catalogs))
    assessment.add_response(answered("strategy_objectives_1", "basic", catalogs))

    progress = {p.dimension_id: p for p in engine.get_dimension_progress(assessment)}
    assert progress["strategy"].status == "in_progress"
    assert progress["strategy"].progress == 50
    assert progress["strategy"].questions_answered == 3
    assert progress["culture"].status == "not_started"

    for qid in ("strategy_budget_1", "strategy_roadmap_1"):
        assessment.add_response(answered(qid, "basic", catalogs))
    progress = {p.dimension_id: p for p in engine.get_dimension_progress(assessment)}
    assert progress["strategy"].status == "completed"
    assert progress["strategy"].progress == 100


def test_time_estimate_and_milestones(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x")
    estimate = engine.estimate_time_remaining(assessment)
    # default path: 2 intro + 25 scored/routing questions
    assert estimate.questions_remaining == 27
    assert estimate.estimated_minutes == 9
    assert estimate.percent_complete == 0
    assert not engine.check_milestone(assessment).reached

    path = [
        ("intro_company_size", "micro"),
        ("intro_sector", "tech"),
        ("strategy_vision_1", "documented"),
        ("strategy_objectives_1", "basic"),
        ("strategy_budget_1", "basic"),
        ("strategy_roadmap_1", "basic"),
    ]
    for qid, aid in path:
        assessment.add_response(answered(qid, aid, catalogs))
    # 6 / 27 = 22%
    assert not engine.check_milestone(assessment).reached

    assessment.add_response(answered("culture_skills_1", "basic", catalogs))
    milestone = engine.check_milestone(assessment)
    assert milestone.reached
    assert milestone.milestone == 25
    assert milestone.message


def test_recent_scores_recommendations_and_follow_ups(engine: TraversalEngine, catalogs: Catalogs):
    assessment = Assessment(id="assess_1_x")
    assessment.add_response(answered("intro_company_size", "micro", catalogs))
    for qid, aid in [
        ("strategy_vision_1", "informal"),
        ("strategy_objectives_1", "none"),
        ("strategy_budget_1", "none"),
        ("strategy_roadmap_1", "optimized"),
    ]:
        assessment.add_response(answered(qid, aid, catalogs))

    recent = engine.recent_scores(assessment)
    assert [r["score"] for r in recent] == [0, 0, 9]
    assert engine.current_dimension(assessment) == "strategy"

    # mean (3 + 0 + 0 + 9) / 4 = 3 is below 4
    recommendations = engine.in_progress_recommendations(assessment)
    assert [r["dimension_id"] for r in recommendations] == ["strategy"]
    assert recommendations[0]["type"] == "improvement_area"

    follow_ups = engine.suggested_follow_ups(assessment, "strategy")
    assert [f["pillar_id"] for f in follow_ups] == ["vision", "objectives", "budget"]

    path = engine.question_path(assessment)
    assert [step.step for step in path] == [1, 2, 3, 4, 5]
    assert path[0].score is None
