from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.domain.catalog import (
    QuestionBank,
    initialize,
    validate_catalogs,
    validate_profile_table,
)
from app.domain.models import IntroQuestion, MaturityProfile, Option, QuestionKind, ScoredQuestion
from app.infrastructure.config import SOURCE_DATA_DIR, CatalogConfig
from app.infrastructure.exceptions import ConfigurationError, QuestionNotFoundError


def write_json(path: Path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def load_source(name: str):
    return json.loads((SOURCE_DATA_DIR / name).read_text(encoding="utf-8"))


def test_bundled_catalogs_load(catalogs):
    assert len(catalogs.dimensions.get_dimensions()) == 6
    assert all(len(d.pillars) == 4 for d in catalogs.dimensions.get_dimensions())
    assert [p.id for p in catalogs.dimensions.get_maturity_profiles()] == [
        "beginner",
        "emergent",
        "challenger",
        "leader",
    ]
    assert catalogs.questions.get_entry_question().id == "intro_company_size"
    assert catalogs.questions.default_path_length() == 27


def test_question_kinds_are_parsed(catalogs):
    intro = catalogs.questions.get_question_required("intro_sector")
    scored = catalogs.questions.get_question_required("strategy_vision_1")
    routing = catalogs.questions.get_question_required("technology_cloud_usage")

    assert intro.kind == QuestionKind.INTRO
    assert intro.options[0].value == "retail"
    assert isinstance(scored, ScoredQuestion)
    assert scored.conditional_next == {"strategic": "strategy_vision_2"}
    assert routing.kind == QuestionKind.CONDITIONAL
    assert routing.conditional_next["no"] == "technology_cloud_2"


def test_question_lookups(catalogs):
    qb = catalogs.questions
    assert qb.get_question_by_id(None) is None
    assert qb.get_question_by_id("nope") is None
    with pytest.raises(QuestionNotFoundError):
        qb.get_question_required("nope")

    cloud = qb.get_questions_by_pillar("technology", "cloud")
    assert [q.id for q in cloud] == ["technology_cloud_1", "technology_cloud_2"]
    assert len(qb.get_questions_by_type("intro")) == 2
    assert {q.dimension for q in qb.get_questions_by_dimension("security")} == {"security"}


def test_statistics(catalogs):
    stats = catalogs.questions.statistics(catalogs.dimensions.get_dimensions())
    assert stats["total"] == len(catalogs.questions)
    assert stats["by_type"]["intro"] == 2
    assert stats["by_type"]["conditional"] == 1
    assert stats["by_dimension"]["technology"]["by_pillar"]["cloud"] == 2
    assert stats["avg_options_per_question"] > 0


def test_duplicate_question_ids_rejected():
    opts = (Option(id="a", text="A"),)
    with pytest.raises(ConfigurationError):
        QuestionBank([IntroQuestion("q", "Q", opts), IntroQuestion("q", "Q again", opts)], "q")


def test_profile_table_must_partition_0_to_100():
    def profile(pid, lo, hi):
        return MaturityProfile(id=pid, name=pid, description="", min_score=lo, max_score=hi)

    validate_profile_table([profile("a", 0, 50), profile("b", 51, 100)])
    with pytest.raises(ConfigurationError, match="gap"):
        validate_profile_table([profile("a", 0, 40), profile("b", 51, 100)])
    with pytest.raises(ConfigurationError, match="overlap"):
        validate_profile_table([profile("a", 0, 60), profile("b", 51, 100)])
    with pytest.raises(ConfigurationError):
        validate_profile_table([profile("a", 0, 90)])


def test_wrong_pillar_count_is_fatal(tmp_path: Path):
    dimensions = load_source("dimensions.json")
    dimensions["dimensions"][0]["pillars"].pop()
    config = CatalogConfig(dimensions_path=write_json(tmp_path / "dimensions.json", dimensions))
    with pytest.raises(ConfigurationError, match="pillars"):
        initialize(config)


def test_profile_gap_in_file_is_fatal(tmp_path: Path):
    dimensions = load_source("dimensions.json")
    dimensions["maturityProfiles"][1]["minScore"] = 30
    config = CatalogConfig(dimensions_path=write_json(tmp_path / "dimensions.json", dimensions))
    with pytest.raises(ConfigurationError, match="gap"):
        initialize(config)


def test_missing_or_malformed_files(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        initialize(CatalogConfig(questions_path=str(tmp_path / "missing.json")))

    broken = tmp_path / "questions.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        initialize(CatalogConfig(questions_path=str(broken)))


def test_scored_question_requires_scores(tmp_path: Path):
    questions = load_source("questions.json")
    questions["questions"][2]["options"][0].pop("score")
    config = CatalogConfig(questions_path=write_json(tmp_path / "questions.json", questions))
    with pytest.raises(ConfigurationError):
        initialize(config)


def test_dangling_links_are_warnings(tmp_path: Path, catalogs):
    questions = load_source("questions.json")
    questions["questions"][2]["conditionalNext"]["strategic"] = "does_not_exist"
    config = CatalogConfig(questions_path=write_json(tmp_path / "questions.json", questions))

    loaded = initialize(config)
    warnings = validate_catalogs(loaded.questions, loaded.dimensions, config)
    assert any("does_not_exist" in w for w in warnings)


def test_unknown_entry_question_is_fatal():
    with pytest.raises(ConfigurationError, match="Entry question"):
        initialize(CatalogConfig(entry_question_id="not_there"))
