"""Parsing of model output into evaluation fields.

Two layouts are understood:

* the JSON object requested by ``build_evaluation_prompt`` (validated with
  pydantic, scores clamped to their ranges), and
* the labeled text layout older prompts asked for::

      Review Score: 78
      Grammar Score: 7
      ...
      Grammar Issues:
      first issue
      ---
      second issue
      Suggestions:
      1. ...
      Final Remarks: ...

``parse_labeled_evaluation`` never raises: any field it cannot find keeps its
placeholder value. ``parse_structured_evaluation`` raises
``MalformedAIResponseError``. ``parse_evaluation`` tries the JSON contract
first; a JSON object that fails validation is salvaged key by key, and the
labeled layout is only tried on text without a JSON object. It raises only
when nothing yields a single field.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from writeedge.core.errors import MalformedAIResponseError

logger = logging.getLogger(__name__)

NO_FEEDBACK = "No feedback available"
NO_ISSUES = "No significant errors found."
NO_SUGGESTIONS = "No suggestions available"
NO_REMARKS = "No final remarks available"
ISSUE_SEPARATOR = "---"

REVIEW_SCORE_MAX = 100
SUB_SCORE_MAX = 10


@dataclass
class ParsedEvaluation:
    review_score: int = 0
    grammar_score: int = 0
    content_score: int = 0
    creativity_score: int = 0
    summary_feedback: str = NO_FEEDBACK
    grammar_issues: str = NO_ISSUES
    suggestions: str = NO_SUGGESTIONS
    final_remarks: str = NO_REMARKS
    # How many of the eight fields came from the response rather than defaults
    matched_fields: int = field(default=0, compare=False)

    def as_columns(self) -> Dict[str, Any]:
        values = asdict(self)
        values.pop("matched_fields")
        return values

    def to_payload(self) -> Dict[str, Any]:
        return {
            "reviewScore": self.review_score,
            "grammarScore": self.grammar_score,
            "contentScore": self.content_score,
            "creativityScore": self.creativity_score,
            "summaryFeedback": self.summary_feedback,
            "grammarIssues": self.grammar_issues,
            "suggestions": self.suggestions,
            "finalRemarks": self.final_remarks,
        }


def _clamp(value: float, upper: int) -> int:
    return max(0, min(upper, int(round(value))))


# ---------------------------------------------------------------------------
# Structured (JSON) contract
# ---------------------------------------------------------------------------

class StructuredEvaluation(BaseModel):
    reviewScore: float
    grammarScore: float
    contentScore: float
    creativityScore: float
    summaryFeedback: str
    grammarIssues: Union[List[str], str] = Field(default_factory=list)
    suggestions: Union[List[str], str] = Field(default_factory=list)
    finalRemarks: str


def _extract_json_object(text: str) -> Dict[str, Any]:
    text = (text or "").strip()
    # Strip code fences if the model added them anyway
    if text.startswith("```"):
        text = text.strip("`")
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise MalformedAIResponseError("Model response contains no JSON object")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedAIResponseError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedAIResponseError("Model response JSON is not an object")
    return data


def _join_issues(value: Union[List[str], str]) -> str:
    if isinstance(value, str):
        return value.strip() or NO_ISSUES
    issues = [str(item).strip() for item in value if str(item).strip()]
    return f"\n{ISSUE_SEPARATOR}\n".join(issues) or NO_ISSUES


def _number_suggestions(value: Union[List[str], str]) -> str:
    if isinstance(value, str):
        return value.strip() or NO_SUGGESTIONS
    items = [re.sub(r"^\s*\d+[.)]\s*", "", str(item)).strip() for item in value]
    lines = [f"{idx}. {item}" for idx, item in enumerate((i for i in items if i), start=1)]
    return "\n".join(lines) or NO_SUGGESTIONS


def _validate_structured(data: Dict[str, Any]) -> ParsedEvaluation:
    try:
        structured = StructuredEvaluation.model_validate(data)
    except ValidationError as e:
        raise MalformedAIResponseError(
            f"Model response failed evaluation schema validation ({e.error_count()} error(s))"
        ) from e

    return ParsedEvaluation(
        review_score=_clamp(structured.reviewScore, REVIEW_SCORE_MAX),
        grammar_score=_clamp(structured.grammarScore, SUB_SCORE_MAX),
        content_score=_clamp(structured.contentScore, SUB_SCORE_MAX),
        creativity_score=_clamp(structured.creativityScore, SUB_SCORE_MAX),
        summary_feedback=structured.summaryFeedback.strip() or NO_FEEDBACK,
        grammar_issues=_join_issues(structured.grammarIssues),
        suggestions=_number_suggestions(structured.suggestions),
        final_remarks=structured.finalRemarks.strip() or NO_REMARKS,
        matched_fields=8,
    )


def parse_structured_evaluation(text: str) -> ParsedEvaluation:
    """Validate a JSON evaluation; raises MalformedAIResponseError."""
    return _validate_structured(_extract_json_object(text))


_JSON_SCORE_KEYS = {
    "review_score": ("reviewScore", REVIEW_SCORE_MAX),
    "grammar_score": ("grammarScore", SUB_SCORE_MAX),
    "content_score": ("contentScore", SUB_SCORE_MAX),
    "creativity_score": ("creativityScore", SUB_SCORE_MAX),
}

_JSON_TEXT_KEYS = {
    "summary_feedback": ("summaryFeedback", None),
    "grammar_issues": ("grammarIssues", _join_issues),
    "suggestions": ("suggestions", _number_suggestions),
    "final_remarks": ("finalRemarks", None),
}


def _coerce_score(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        # "78/100", "7 out of 10", "8.5"
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if match:
            return float(match.group())
    return None


def salvage_structured_evaluation(data: Dict[str, Any]) -> ParsedEvaluation:
    """Field-by-field recovery from a decoded JSON object that failed validation.

    Never raises; fields with an unusable value keep their placeholder.
    """
    parsed = ParsedEvaluation()
    matched = 0

    for name, (key, upper) in _JSON_SCORE_KEYS.items():
        score = _coerce_score(data.get(key))
        if score is not None:
            setattr(parsed, name, _clamp(score, upper))
            matched += 1

    for name, (key, formatter) in _JSON_TEXT_KEYS.items():
        value = data.get(key)
        if formatter is not None and isinstance(value, (list, str)):
            setattr(parsed, name, formatter(value))
            matched += 1
        elif isinstance(value, str) and value.strip():
            setattr(parsed, name, value.strip())
            matched += 1

    parsed.matched_fields = matched
    return parsed


# ---------------------------------------------------------------------------
# Labeled text layout
# ---------------------------------------------------------------------------

_SCORE_LABELS = {
    "review_score": (r"review[\s_]*score", REVIEW_SCORE_MAX),
    "grammar_score": (r"grammar[\s_]*score", SUB_SCORE_MAX),
    "content_score": (r"content[\s_]*score", SUB_SCORE_MAX),
    "creativity_score": (r"creativity[\s_]*score", SUB_SCORE_MAX),
}

_TEXT_LABELS = {
    "summary_feedback": r"summary(?:[\s_]*feedback)?",
    "grammar_issues": r"grammar[\s_]*(?:issues|errors)",
    "suggestions": r"suggestions(?:[\s_]*for[\s_]*improvement)?",
    "final_remarks": r"final[\s_]*remarks",
}

_ANY_LABEL = "|".join(
    [label for label, _ in _SCORE_LABELS.values()] + list(_TEXT_LABELS.values())
)

_SCORE_PATTERNS = {
    name: (re.compile(rf'{label}"?\s*[:=]\s*"?(\d+(?:\.\d+)?)', re.IGNORECASE), upper)
    for name, (label, upper) in _SCORE_LABELS.items()
}

_TEXT_PATTERNS = {
    name: re.compile(
        rf'{label}"?\s*:\s*(.*?)(?=(?:{_ANY_LABEL})"?\s*[:=]|\Z)',
        re.IGNORECASE | re.DOTALL,
    )
    for name, label in _TEXT_LABELS.items()
}


def _strip_markdown(text: str) -> str:
    text = text.replace("**", "")
    return re.sub(r"^\s*#+\s*", "", text, flags=re.MULTILINE)


def parse_labeled_evaluation(text: str) -> ParsedEvaluation:
    """Best-effort labeled parse. Unmatched fields keep placeholder defaults."""
    parsed = ParsedEvaluation()
    if not text or not text.strip():
        return parsed

    cleaned = _strip_markdown(text)
    matched = 0

    for name, (pattern, upper) in _SCORE_PATTERNS.items():
        match = pattern.search(cleaned)
        if match:
            setattr(parsed, name, _clamp(float(match.group(1)), upper))
            matched += 1

    for name, pattern in _TEXT_PATTERNS.items():
        match = pattern.search(cleaned)
        if not match:
            continue
        value = match.group(1).strip().rstrip(",").strip()
        if value:
            setattr(parsed, name, value)
            matched += 1

    parsed.matched_fields = matched
    return parsed


def _recovered_or_raise(parsed: ParsedEvaluation, exc: MalformedAIResponseError, source: str) -> ParsedEvaluation:
    if parsed.matched_fields == 0:
        raise MalformedAIResponseError(
            f"Model response did not follow the evaluation format: {exc.message}"
        ) from exc
    logger.warning(
        "Structured evaluation parse failed (%s); %s recovered %d/8 fields",
        exc.message,
        source,
        parsed.matched_fields,
    )
    return parsed


def parse_evaluation(text: str) -> ParsedEvaluation:
    """JSON contract first, then the best fallback for what the model sent.

    A decoded JSON object that fails validation is salvaged field by field;
    only text with no JSON object goes through the labeled layout. Raises
    MalformedAIResponseError only when no field could be recovered.
    """
    try:
        data = _extract_json_object(text)
    except MalformedAIResponseError as exc:
        return _recovered_or_raise(parse_labeled_evaluation(text), exc, "labeled fallback")

    try:
        return _validate_structured(data)
    except MalformedAIResponseError as exc:
        return _recovered_or_raise(salvage_structured_evaluation(data), exc, "JSON salvage")
