import logging
from typing import Any, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from writeedge.core.config import Settings, settings as default_settings
from writeedge.core.errors import InvalidSubmissionError, WriteEdgeError
from writeedge.core.genai_client import JSON_GENERATION_CONFIG
from writeedge.services.evaluation.parser import ParsedEvaluation, parse_evaluation
from writeedge.services.evaluation.prompt import build_answers_text, build_evaluation_prompt
from writeedge.services.evaluation.queue import (
    claim_evaluation,
    complete_evaluation,
    fail_or_reschedule,
    load_question_answer_pairs,
)
from writeedge.utils.enums import EvaluationStatus

logger = logging.getLogger(__name__)


async def generate_evaluation(model: Any, writing: str, *, context: Optional[str] = None) -> Tuple[ParsedEvaluation, str]:
    """Call the model once and parse its answer.

    Raises AIServiceError from the client or MalformedAIResponseError from parsing.
    """
    prompt = build_evaluation_prompt(writing, context=context)
    response = await model.generate_content_async(prompt, generation_config=JSON_GENERATION_CONFIG.copy())
    raw = response.text
    return parse_evaluation(raw), raw


async def process_evaluation(
    submission_id: int,
    *,
    session_factory: async_sessionmaker,
    model: Any,
    config: Settings = default_settings,
) -> Optional[EvaluationStatus]:
    """Run one evaluation attempt for a submission.

    Returns the resulting status, or None when the row could not be claimed
    (already processing elsewhere, not yet due, done or failed).
    """
    if not await claim_evaluation(session_factory, submission_id):
        logger.debug(f"Evaluation for submission {submission_id} not claimable; skipping")
        return None

    logger.info(f"Generating evaluation for submission {submission_id}")
    try:
        pairs = await load_question_answer_pairs(session_factory, submission_id)
        if not pairs:
            raise InvalidSubmissionError(f"Submission {submission_id} has no answers to evaluate")
        parsed, raw = await generate_evaluation(model, build_answers_text(pairs))
        stored = await complete_evaluation(session_factory, submission_id, parsed, raw)
    except Exception as e:
        retryable = e.retryable if isinstance(e, WriteEdgeError) else True
        logger.error(
            f"Evaluation attempt for submission {submission_id} failed: {type(e).__name__}: {e}",
            exc_info=not isinstance(e, WriteEdgeError),
        )
        return await fail_or_reschedule(
            session_factory,
            submission_id,
            f"{type(e).__name__}: {e}",
            retryable=retryable,
            max_attempts=config.EVALUATION_MAX_ATTEMPTS,
            backoff_base=config.EVALUATION_BACKOFF_SECONDS,
            backoff_cap=config.EVALUATION_MAX_BACKOFF_SECONDS,
        )

    if stored:
        logger.info(
            f"Evaluation for submission {submission_id} stored "
            f"(review score {parsed.review_score}, {parsed.matched_fields}/8 fields parsed)"
        )
        return EvaluationStatus.done
    return None
