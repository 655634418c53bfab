"""Persistence side of the evaluation pipeline.

``test_evaluations`` rows double as durable work items. Every state change
is a single conditional UPDATE so concurrent triggers for the same
submission cannot both win:

    pending --claim--> processing --complete--> done
                           |
                           +--reschedule--> pending (next_attempt_at in the future)
                           +--fail--------> failed
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from writeedge.models.test import Question
from writeedge.models.submission import Answer
from writeedge.models.test_evaluation import TestEvaluation
from writeedge.services.evaluation.parser import ParsedEvaluation
from writeedge.utils.datetime_utils import get_current_utc_datetime, utc_after
from writeedge.utils.enums import EvaluationStatus

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 1000


def backoff_delay(attempts: int, base: float, cap: float) -> float:
    """Exponential backoff after the given (1-based) attempt number."""
    return min(base * (2 ** max(attempts - 1, 0)), cap)


def new_pending_evaluation(submission_id: Optional[int] = None) -> TestEvaluation:
    """Outbox row added in the same transaction as the submission."""
    return TestEvaluation(
        submission_id=submission_id,
        status=EvaluationStatus.pending,
        attempts=0,
        next_attempt_at=get_current_utc_datetime(),
    )


async def get_evaluation(db: AsyncSession, submission_id: int) -> Optional[TestEvaluation]:
    res = await db.execute(
        select(TestEvaluation).where(TestEvaluation.submission_id == submission_id)
    )
    return res.scalars().first()


async def ensure_evaluation_row(db: AsyncSession, submission_id: int) -> bool:
    """Create a pending row for a submission that has none.

    Returns False when a concurrent caller inserted it first; the unique key
    on submission_id decides the winner.
    """
    db.add(new_pending_evaluation(submission_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Evaluation row for submission {submission_id} already enqueued by a concurrent request")
        return False
    logger.info(f"Enqueued evaluation for submission {submission_id} (no row existed)")
    return True


async def claim_evaluation(session_factory: async_sessionmaker, submission_id: int) -> bool:
    """Move a due pending row to processing. Only one caller can succeed."""
    now = get_current_utc_datetime()
    async with session_factory() as session:
        res = await session.execute(
            update(TestEvaluation)
            .where(
                TestEvaluation.submission_id == submission_id,
                TestEvaluation.status == EvaluationStatus.pending,
                TestEvaluation.next_attempt_at <= now,
            )
            .values(
                status=EvaluationStatus.processing,
                attempts=TestEvaluation.attempts + 1,
                claimed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return res.rowcount == 1


async def load_question_answer_pairs(session_factory: async_sessionmaker, submission_id: int) -> List[tuple]:
    async with session_factory() as session:
        res = await session.execute(
            select(Question.question_text, Answer.answer_text)
            .join(Answer, Answer.question_id == Question.id)
            .where(Answer.submission_id == submission_id)
            .order_by(Question.question_order, Question.id)
        )
        return [(row.question_text, row.answer_text) for row in res.all()]


async def complete_evaluation(
    session_factory: async_sessionmaker,
    submission_id: int,
    parsed: ParsedEvaluation,
    raw_response: Optional[str],
) -> bool:
    async with session_factory() as session:
        res = await session.execute(
            update(TestEvaluation)
            .where(
                TestEvaluation.submission_id == submission_id,
                TestEvaluation.status == EvaluationStatus.processing,
            )
            .values(
                status=EvaluationStatus.done,
                last_error=None,
                raw_response=raw_response,
                **parsed.as_columns(),
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        if res.rowcount != 1:
            logger.warning(f"Evaluation for submission {submission_id} was no longer processing; result discarded")
            return False
        return True


async def fail_or_reschedule(
    session_factory: async_sessionmaker,
    submission_id: int,
    error: str,
    *,
    retryable: bool,
    max_attempts: int,
    backoff_base: float,
    backoff_cap: float,
) -> Optional[EvaluationStatus]:
    """Record a failed attempt; schedule another one or mark terminal failure."""
    error = (error or "Unknown error")[:MAX_ERROR_CHARS]
    async with session_factory() as session:
        attempts = (
            await session.execute(
                select(TestEvaluation.attempts).where(TestEvaluation.submission_id == submission_id)
            )
        ).scalar_one_or_none()
        if attempts is None:
            return None

        if retryable and attempts < max_attempts:
            delay = backoff_delay(attempts, backoff_base, backoff_cap)
            values = {
                "status": EvaluationStatus.pending,
                "next_attempt_at": utc_after(delay),
                "claimed_at": None,
                "last_error": error,
            }
            outcome = EvaluationStatus.pending
            logger.warning(
                f"Evaluation attempt {attempts}/{max_attempts} for submission {submission_id} failed: {error}; "
                f"retrying in {delay:.1f}s"
            )
        else:
            values = {"status": EvaluationStatus.failed, "claimed_at": None, "last_error": error}
            outcome = EvaluationStatus.failed
            logger.error(
                f"Evaluation for submission {submission_id} failed permanently after {attempts} attempt(s): {error}"
            )

        res = await session.execute(
            update(TestEvaluation)
            .where(
                TestEvaluation.submission_id == submission_id,
                TestEvaluation.status == EvaluationStatus.processing,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return outcome if res.rowcount == 1 else None


async def due_submission_ids(session_factory: async_sessionmaker, limit: int) -> List[int]:
    now = get_current_utc_datetime()
    async with session_factory() as session:
        res = await session.execute(
            select(TestEvaluation.submission_id)
            .where(
                TestEvaluation.status == EvaluationStatus.pending,
                TestEvaluation.next_attempt_at <= now,
            )
            .order_by(TestEvaluation.next_attempt_at, TestEvaluation.id)
            .limit(limit)
        )
        return list(res.scalars().all())


async def recover_stale_claims(session_factory: async_sessionmaker, older_than_seconds: float) -> int:
    """Return rows stuck in processing (owner died mid-call) to pending."""
    cutoff = utc_after(-older_than_seconds)
    async with session_factory() as session:
        res = await session.execute(
            update(TestEvaluation)
            .where(
                TestEvaluation.status == EvaluationStatus.processing,
                TestEvaluation.claimed_at <= cutoff,
            )
            .values(
                status=EvaluationStatus.pending,
                claimed_at=None,
                next_attempt_at=get_current_utc_datetime(),
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        if res.rowcount:
            logger.warning(f"Recovered {res.rowcount} stale evaluation claim(s)")
        return res.rowcount


async def release_stale_claim(db: AsyncSession, submission_id: int, older_than_seconds: float) -> bool:
    """Return one submission's processing row to pending if its claim has gone stale."""
    res = await db.execute(
        update(TestEvaluation)
        .where(
            TestEvaluation.submission_id == submission_id,
            TestEvaluation.status == EvaluationStatus.processing,
            TestEvaluation.claimed_at <= utc_after(-older_than_seconds),
        )
        .values(
            status=EvaluationStatus.pending,
            claimed_at=None,
            next_attempt_at=get_current_utc_datetime(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount == 1


async def reset_failed_evaluation(db: AsyncSession, submission_id: int) -> bool:
    """Give a terminally failed evaluation a fresh attempt budget."""
    res = await db.execute(
        update(TestEvaluation)
        .where(
            TestEvaluation.submission_id == submission_id,
            TestEvaluation.status == EvaluationStatus.failed,
        )
        .values(
            status=EvaluationStatus.pending,
            attempts=0,
            next_attempt_at=get_current_utc_datetime(),
            claimed_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount == 1


async def count_by_status(db: AsyncSession) -> dict:
    res = await db.execute(
        select(TestEvaluation.status, func.count(TestEvaluation.id)).group_by(TestEvaluation.status)
    )
    counts = {status.value: 0 for status in EvaluationStatus}
    for status, count in res.all():
        key = status.value if isinstance(status, EvaluationStatus) else str(status)
        counts[key] = count
    return counts
