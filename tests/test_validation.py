import pytest

from app.domain.schemas import (
    AnswerSubmissionInput,
    AssessmentIdInput,
    StartAssessmentInput,
    validate_input,
)


def test_answer_identifiers_valid():
    result = validate_input(
        AnswerSubmissionInput, {"question_id": "strategy_vision_1", "answer_id": "strategic"}
    )
    assert result.success
    assert result.data == {"question_id": "strategy_vision_1", "answer_id": "strategic"}


@pytest.mark.parametrize("answer_id", ["", "Strategic!", "a b", "x" * 101])
def test_answer_identifiers_invalid(answer_id):
    result = validate_input(
        AnswerSubmissionInput, {"question_id": "strategy_vision_1", "answer_id": answer_id}
    )
    assert not result.success
    assert result.errors[0].field == "answer_id"


def test_assessment_id_pattern():
    assert validate_input(AssessmentIdInput, {"assessment_id": "assess_1700000000000_abc123xyz"}).success
    assert not validate_input(AssessmentIdInput, {"assessment_id": "session_42"}).success
    assert not validate_input(AssessmentIdInput, {"assessment_id": "assess_../../etc"}).success


def test_company_fields_are_sanitised():
    result = validate_input(
        StartAssessmentInput,
        {
            "company_name": "  <script>alert('xss')</script>Acme<b>!</b>  ",
            "company_size": "   ",
            "sector": "retail\x00",
        },
    )
    assert result.success
    assert result.data["company_name"] == "Acme!"
    assert result.data["company_size"] is None
    assert result.data["sector"] == "retail"


def test_company_name_too_long():
    result = validate_input(StartAssessmentInput, {"company_name": "A" * 101})
    assert not result.success
    assert result.errors[0].field == "company_name"


def test_identifiers_accept_mixed_case():
    result = validate_input(
        AnswerSubmissionInput, {"question_id": "Strategy_Vision_9", "answer_id": "Yes-1"}
    )
    assert result.success
