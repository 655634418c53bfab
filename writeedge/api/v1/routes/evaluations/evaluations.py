# Standard library imports
import logging

# Third-party imports
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

# Local imports
from writeedge.api.dependencies.evaluation import get_evaluation_dispatcher, get_evaluation_model
from writeedge.core.config import settings
from writeedge.core.errors import NotFoundError
from writeedge.db.deps import get_db
from writeedge.models.submission import Submission
from writeedge.models.test_evaluation import TestEvaluation
from writeedge.schemas.evaluation import EvaluationRequest, WritingEvaluationRequest
from writeedge.services.evaluation.generator import generate_evaluation
from writeedge.services.evaluation.queue import (
    ensure_evaluation_row,
    get_evaluation,
    release_stale_claim,
    reset_failed_evaluation,
)
from writeedge.utils.datetime_utils import get_current_utc_datetime
from writeedge.utils.enums import EvaluationStatus

logger = logging.getLogger(__name__)
router = APIRouter(tags=["evaluations"])


def _pending_payload(status: EvaluationStatus = EvaluationStatus.pending, attempts: int = 0) -> dict:
    return {"pending": True, "status": status.value, "attempts": attempts}


def _status_payload(row: TestEvaluation) -> dict:
    if row.status == EvaluationStatus.done:
        return {"evaluation": row.to_payload(), "cached": True, "status": row.status.value}
    if row.status == EvaluationStatus.failed:
        return {
            "failed": True,
            "status": row.status.value,
            "error": row.last_error,
            "attempts": row.attempts,
        }
    return _pending_payload(row.status, row.attempts)


async def _get_submission_or_404(db: AsyncSession, submission_id: int) -> Submission:
    submission = await db.get(Submission, submission_id)
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


@router.post("/evaluate-test-submission")
async def evaluate_test_submission(
    body: EvaluationRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher=Depends(get_evaluation_dispatcher),
):
    """Read the cached evaluation for a submission.

    Method/Path: POST /api/evaluate-test-submission
    Body: { submissionId }
    Returns one of:
      - { evaluation: {...}, cached: true, status: "done" }
      - { pending: true, status: "pending" | "processing", attempts }
      - { failed: true, status: "failed", error, attempts }
    A due pending row is dispatched again; the claim makes repeated polls safe.
    A processing row whose claim outlived EVALUATION_STALE_CLAIM_SECONDS is
    released back to pending and dispatched.
    """
    submission = await _get_submission_or_404(db, body.submissionId)
    row = await get_evaluation(db, submission.id)

    if row is None:
        # Submissions stored before evaluations were enqueued with them
        await ensure_evaluation_row(db, submission.id)
        dispatcher.dispatch(submission.id)
        return _pending_payload()

    if row.status == EvaluationStatus.processing and await release_stale_claim(
        db, submission.id, settings.EVALUATION_STALE_CLAIM_SECONDS
    ):
        logger.warning(f"Released stale evaluation claim for submission {submission.id}")
        dispatcher.dispatch(submission.id)
        return _pending_payload(EvaluationStatus.pending, row.attempts)

    if row.status == EvaluationStatus.pending:
        dispatcher.dispatch(submission.id)
    return _status_payload(row)


@router.post("/retry-evaluation")
async def retry_evaluation(
    body: EvaluationRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher=Depends(get_evaluation_dispatcher),
):
    """Give a failed evaluation a fresh set of attempts.

    Method/Path: POST /api/retry-evaluation
    Body: { submissionId }
    Non-failed evaluations are returned unchanged.
    """
    submission = await _get_submission_or_404(db, body.submissionId)
    row = await get_evaluation(db, submission.id)

    if row is None:
        await ensure_evaluation_row(db, submission.id)
    elif row.status != EvaluationStatus.failed:
        return _status_payload(row)
    elif not await reset_failed_evaluation(db, submission.id):
        # Someone else reset it in between
        await db.refresh(row)
        return _status_payload(row)
    else:
        logger.info(f"Evaluation for submission {submission.id} reset for retry")

    dispatcher.dispatch(submission.id)
    return _pending_payload()


@router.post("/evaluate-writing")
async def evaluate_writing(
    body: WritingEvaluationRequest,
    model=Depends(get_evaluation_model),
):
    """Evaluate one free-writing exercise synchronously.

    Method/Path: POST /api/evaluate-writing
    Body: { text, studentName?, teacherName?, studentId? }
    AI failures surface as 502 through the error envelope.
    """
    text = body.text[: settings.MAX_ANSWER_CHARS]
    if len(body.text) > settings.MAX_ANSWER_CHARS:
        logger.warning(
            f"Writing from student {body.studentId} truncated from {len(body.text)} "
            f"to {settings.MAX_ANSWER_CHARS} characters before evaluation"
        )
    parsed, _ = await generate_evaluation(model, text, context="Free writing practice exercise")
    logger.info(f"Writing evaluation for student {body.studentId} scored {parsed.review_score}")

    return {
        "studentName": body.studentName or "Student",
        "teacherName": body.teacherName or "Teacher",
        "submissionTime": get_current_utc_datetime().isoformat(),
        "score": parsed.review_score,
        "grammarScore": parsed.grammar_score,
        "contentScore": parsed.content_score,
        "creativityScore": parsed.creativity_score,
        "grammaticalAccuracy": parsed.grammar_issues,
        "contentQuality": f"Content: {parsed.content_score}/10. Creativity: {parsed.creativity_score}/10.",
        "feedbackSummary": parsed.summary_feedback,
        "suggestions": parsed.suggestions,
        "finalRemarks": parsed.final_remarks,
    }
