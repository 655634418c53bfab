# Standard library imports
import logging

# Third-party imports
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

# Local imports
from writeedge.api.dependencies.evaluation import get_evaluation_dispatcher
from writeedge.core.errors import DuplicateSubmissionError, InvalidSubmissionError, NotFoundError
from writeedge.db.deps import get_db
from writeedge.models.submission import Answer, Submission
from writeedge.models.test import Question, Test
from writeedge.models.user import User
from writeedge.schemas.submissions import SubmitTestRequest, SubmitTestResponse
from writeedge.services.evaluation.queue import new_pending_evaluation

logger = logging.getLogger(__name__)
router = APIRouter(tags=["submissions"])


def _evaluation_summary(submission: Submission) -> dict:
    evaluation = submission.evaluation
    if evaluation is None:
        return {"evaluation_status": None, "review_score": None}
    return {
        "evaluation_status": evaluation.status,
        "review_score": evaluation.review_score,
    }


@router.post("/submit-test", status_code=status.HTTP_201_CREATED, response_model=SubmitTestResponse)
async def submit_test(
    body: SubmitTestRequest,
    db: AsyncSession = Depends(get_db),
    dispatcher=Depends(get_evaluation_dispatcher),
):
    """Persist a student's answers and enqueue their AI evaluation.

    Method/Path: POST /api/submit-test
    Body: { testId, studentId, answers: [{ questionId, answerText }] }
    Flow:
        - Rejects a second submission for the same (student, test) with 400.
        - Writes the submission, its answers and a pending evaluation row in
          one transaction, so the evaluation cannot be lost on restart.
        - Dispatches evaluation without waiting for it.
    Returns: { success: true, submissionId }
    """
    test = await db.get(Test, body.testId)
    if not test:
        raise NotFoundError("Test not found")
    if not await db.get(User, body.studentId):
        raise NotFoundError("Student not found")
    if not body.answers:
        raise InvalidSubmissionError("At least one answer is required")

    existing = await db.execute(
        select(Submission.id).where(
            Submission.student_id == body.studentId,
            Submission.test_id == body.testId,
        )
    )
    if existing.scalars().first() is not None:
        raise DuplicateSubmissionError(body.studentId, body.testId)

    res = await db.execute(select(Question.id).where(Question.test_id == test.id))
    question_ids = set(res.scalars().all())
    answered = [a.questionId for a in body.answers]
    foreign = sorted(set(answered) - question_ids)
    if foreign:
        raise InvalidSubmissionError(f"Questions {foreign} do not belong to test {test.id}")
    if len(answered) != len(set(answered)):
        raise InvalidSubmissionError("Each question can only be answered once")

    submission = Submission(
        test_id=test.id,
        student_id=body.studentId,
        answers=[Answer(question_id=a.questionId, answer_text=a.answerText) for a in body.answers],
    )
    submission.evaluation = new_pending_evaluation()
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent submit for the same pair
        await db.rollback()
        raise DuplicateSubmissionError(body.studentId, body.testId)

    logger.info(
        f"Accepted submission {submission.id} (test {test.id}, student {body.studentId}, "
        f"{len(body.answers)} answer(s)); evaluation enqueued"
    )
    dispatcher.dispatch(submission.id)

    return SubmitTestResponse(success=True, submissionId=submission.id)


@router.get("/submission-details/{submission_id}")
async def submission_details(submission_id: int, db: AsyncSession = Depends(get_db)):
    """Full submission with ordered questions and answers.

    Method/Path: GET /api/submission-details/{submission_id}
    Returns: { submission: {...} } or 404.
    """
    res = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .options(
            selectinload(Submission.test).selectinload(Test.teacher),
            selectinload(Submission.test).selectinload(Test.questions),
            selectinload(Submission.student),
            selectinload(Submission.answers),
            selectinload(Submission.evaluation),
        )
    )
    submission = res.scalars().first()
    if not submission:
        raise NotFoundError("Submission not found")

    test = submission.test
    answers_by_question = {a.question_id: a.answer_text for a in submission.answers}
    questions_and_answers = [
        {
            "question_id": q.id,
            "question_text": q.question_text,
            "question_order": q.question_order,
            "word_limit": q.word_limit,
            "answer": answers_by_question.get(q.id),
        }
        for q in test.questions
    ]

    return {
        "submission": {
            "id": submission.id,
            "test_id": test.id,
            "test_name": test.test_name,
            "test_code": test.test_code,
            "time_limit_minutes": test.time_limit_minutes,
            "submitted_at": submission.submitted_at,
            "student_id": submission.student_id,
            "student_email": submission.student.email,
            "student_first_name": submission.student.first_name,
            "student_last_name": submission.student.last_name,
            "teacher_email": test.teacher.email,
            "teacher_first_name": test.teacher.first_name,
            "teacher_last_name": test.teacher.last_name,
            "questions_and_answers": questions_and_answers,
            **_evaluation_summary(submission),
        }
    }


@router.get("/test-submissions/{test_id}")
async def test_submissions(test_id: int, db: AsyncSession = Depends(get_db)):
    """All submissions for one test, newest first."""
    if not await db.get(Test, test_id):
        raise NotFoundError("Test not found")
    res = await db.execute(
        select(Submission)
        .where(Submission.test_id == test_id)
        .options(selectinload(Submission.student), selectinload(Submission.evaluation))
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    submissions = [
        {
            "submission_id": s.id,
            "student_id": s.student_id,
            "student_email": s.student.email,
            "student_first_name": s.student.first_name,
            "student_last_name": s.student.last_name,
            "submitted_at": s.submitted_at,
            **_evaluation_summary(s),
        }
        for s in res.scalars().all()
    ]
    return {"submissions": submissions}


@router.get("/student-submissions/{student_id}")
async def student_submissions(student_id: int, db: AsyncSession = Depends(get_db)):
    """A student's submissions across tests, newest first."""
    res = await db.execute(
        select(Submission)
        .where(Submission.student_id == student_id)
        .options(selectinload(Submission.test), selectinload(Submission.evaluation))
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    submissions = [
        {
            "submission_id": s.id,
            "test_id": s.test_id,
            "test_name": s.test.test_name,
            "test_code": s.test.test_code,
            "submitted_at": s.submitted_at,
            **_evaluation_summary(s),
        }
        for s in res.scalars().all()
    ]
    return {"submissions": submissions}
