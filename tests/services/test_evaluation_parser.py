from __future__ import annotations

import json

import pytest

from writeedge.core.errors import MalformedAIResponseError
from writeedge.services.evaluation.parser import (
    NO_FEEDBACK,
    NO_ISSUES,
    NO_REMARKS,
    NO_SUGGESTIONS,
    ParsedEvaluation,
    parse_evaluation,
    parse_labeled_evaluation,
    parse_structured_evaluation,
    salvage_structured_evaluation,
)
from writeedge.services.evaluation.prompt import build_answers_text, build_evaluation_prompt


LABELED_RESPONSE = """**Review Score:** 78
Grammar Score: 7
Content Score: 8
Creativity Score: 6
Summary Feedback: Clear argument with a strong opening.
Grammar Issues:
thier -> their
---
Run-on sentence in paragraph two.
Suggestions:
1. Add supporting evidence
2. Vary sentence length
Final Remarks: Keep it up."""


def test_labeled_response_fills_every_field():
    parsed = parse_labeled_evaluation(LABELED_RESPONSE)

    assert parsed.review_score == 78
    assert parsed.grammar_score == 7
    assert parsed.content_score == 8
    assert parsed.creativity_score == 6
    assert parsed.summary_feedback == "Clear argument with a strong opening."
    assert parsed.grammar_issues == "thier -> their\n---\nRun-on sentence in paragraph two."
    assert parsed.suggestions == "1. Add supporting evidence\n2. Vary sentence length"
    assert parsed.final_remarks == "Keep it up."
    assert parsed.matched_fields == 8


def test_labeled_parse_keeps_placeholders_for_missing_fields():
    parsed = parse_labeled_evaluation("Review Score: 64\nSummary Feedback: Decent effort.")

    assert parsed.review_score == 64
    assert parsed.summary_feedback == "Decent effort."
    assert parsed.grammar_score == 0
    assert parsed.grammar_issues == NO_ISSUES
    assert parsed.suggestions == NO_SUGGESTIONS
    assert parsed.final_remarks == NO_REMARKS
    assert parsed.matched_fields == 2


@pytest.mark.parametrize("text", ["", "   ", "I cannot evaluate this text."])
def test_labeled_parse_never_raises(text):
    parsed = parse_labeled_evaluation(text)

    assert parsed == ParsedEvaluation()
    assert parsed.summary_feedback == NO_FEEDBACK
    assert parsed.matched_fields == 0


def test_labeled_scores_are_clamped():
    parsed = parse_labeled_evaluation("Review Score: 140\nGrammar Score: 12.6")

    assert parsed.review_score == 100
    assert parsed.grammar_score == 10


def test_structured_response(valid_evaluation):
    parsed = parse_structured_evaluation(json.dumps(valid_evaluation))

    assert parsed.review_score == 82
    assert parsed.creativity_score == 9
    assert parsed.grammar_issues == "'thier' should be 'their' (spelling)"
    assert parsed.suggestions == "1. Add a counter-argument\n2. Vary sentence openings"
    assert parsed.matched_fields == 8


def test_structured_response_inside_code_fence(valid_evaluation):
    text = f"```json\n{json.dumps(valid_evaluation)}\n```"

    assert parse_structured_evaluation(text).review_score == 82


def test_structured_response_normalises_lists_and_scores(valid_evaluation):
    valid_evaluation.update(
        reviewScore=-5,
        contentScore=7.6,
        grammarIssues=["first", "  ", "second"],
        suggestions=["1. Already numbered", "Plain"],
    )
    parsed = parse_structured_evaluation(json.dumps(valid_evaluation))

    assert parsed.review_score == 0
    assert parsed.content_score == 8
    assert parsed.grammar_issues == "first\n---\nsecond"
    assert parsed.suggestions == "1. Already numbered\n2. Plain"


def test_structured_empty_lists_use_placeholders(valid_evaluation):
    valid_evaluation.update(grammarIssues=[], suggestions=[])
    parsed = parse_structured_evaluation(json.dumps(valid_evaluation))

    assert parsed.grammar_issues == NO_ISSUES
    assert parsed.suggestions == NO_SUGGESTIONS


def test_structured_parse_rejects_missing_fields(valid_evaluation):
    del valid_evaluation["reviewScore"]

    with pytest.raises(MalformedAIResponseError):
        parse_structured_evaluation(json.dumps(valid_evaluation))


@pytest.mark.parametrize("text", ["no json here", "{not: valid json}"])
def test_structured_parse_rejects_non_json(text):
    with pytest.raises(MalformedAIResponseError):
        parse_structured_evaluation(text)


def test_parse_evaluation_falls_back_to_labeled_layout():
    parsed = parse_evaluation(LABELED_RESPONSE)

    assert parsed.review_score == 78
    assert parsed.final_remarks == "Keep it up."


@pytest.mark.parametrize("text", ["", "The model refused to answer."])
def test_parse_evaluation_raises_when_nothing_is_recoverable(text):
    with pytest.raises(MalformedAIResponseError) as exc_info:
        parse_evaluation(text)

    assert exc_info.value.retryable is True


def test_to_payload_uses_camel_case(valid_evaluation):
    payload = parse_evaluation(json.dumps(valid_evaluation)).to_payload()

    assert payload["reviewScore"] == 82
    assert set(payload) == {
        "reviewScore",
        "grammarScore",
        "contentScore",
        "creativityScore",
        "summaryFeedback",
        "grammarIssues",
        "suggestions",
        "finalRemarks",
    }


def test_build_answers_text_numbers_questions_and_clamps_answers():
    text = build_answers_text(
        [("First question?", "  short answer  "), ("Second question?", "x" * 50), ("Third?", None)],
        max_chars=20,
    )

    assert text == f"Q1: First question?\nshort answer\n\nQ2: Second question?\n{'x' * 20}\n\nQ3: Third?"


def test_build_evaluation_prompt_includes_context_and_writing():
    prompt = build_evaluation_prompt("My essay.", context="Free writing practice exercise")

    assert '"reviewScore"' in prompt
    assert "Context: Free writing practice exercise" in prompt
    assert prompt.endswith("Student writing:\nMy essay.")


def test_invalid_json_fields_are_salvaged_without_json_debris(valid_evaluation):
    valid_evaluation.update(
        reviewScore="78/100",
        grammarScore="7 out of 10",
        summaryFeedback="Clear argument.",
        grammarIssues=["thier -> their"],
        finalRemarks="Keep it up.",
    )

    parsed = parse_evaluation(json.dumps(valid_evaluation))

    assert parsed.review_score == 78
    assert parsed.grammar_score == 7
    assert parsed.content_score == 7
    assert parsed.summary_feedback == "Clear argument."
    assert parsed.grammar_issues == "thier -> their"
    assert parsed.suggestions == "1. Add a counter-argument\n2. Vary sentence openings"
    assert parsed.final_remarks == "Keep it up."
    assert parsed.matched_fields == 8


def test_salvage_keeps_placeholders_for_unusable_values():
    parsed = salvage_structured_evaluation(
        {"reviewScore": "excellent", "contentScore": True, "summaryFeedback": "  ", "creativityScore": 6}
    )

    assert parsed.review_score == 0
    assert parsed.content_score == 0
    assert parsed.creativity_score == 6
    assert parsed.summary_feedback == NO_FEEDBACK
    assert parsed.matched_fields == 1


def test_json_without_any_evaluation_field_is_malformed():
    with pytest.raises(MalformedAIResponseError):
        parse_evaluation('{"answer": "I would rather not grade this."}')
