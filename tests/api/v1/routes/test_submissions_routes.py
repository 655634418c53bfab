from __future__ import annotations

import pytest
from sqlalchemy import func, select

from writeedge.models.submission import Answer, Submission
from writeedge.models.test_evaluation import TestEvaluation
from writeedge.utils.enums import EvaluationStatus

pytestmark = pytest.mark.anyio


def _payload(seeded, **overrides):
    body = {
        "testId": seeded.test_id,
        "studentId": seeded.student_id,
        "answers": [
            {"questionId": seeded.question_ids[0], "answerText": "  Shorter weeks mean rested students.  "},
            {"questionId": seeded.question_ids[1], "answerText": "My grandmother's kitchen."},
        ],
    }
    body.update(overrides)
    return body


async def _count(db_session, column) -> int:
    return await db_session.scalar(select(func.count(column)))


async def test_submit_test_persists_submission_and_pending_evaluation(client, seeded, dispatcher, db_session):
    resp = await client.post("/api/submit-test", json=_payload(seeded))

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    submission_id = body["submissionId"]
    assert dispatcher.dispatched == [submission_id]

    answers = (
        await db_session.execute(select(Answer).where(Answer.submission_id == submission_id).order_by(Answer.id))
    ).scalars().all()
    assert [a.answer_text for a in answers] == [
        "Shorter weeks mean rested students.",
        "My grandmother's kitchen.",
    ]

    evaluation = (
        await db_session.execute(select(TestEvaluation).where(TestEvaluation.submission_id == submission_id))
    ).scalar_one()
    assert evaluation.status == EvaluationStatus.pending
    assert evaluation.attempts == 0
    assert evaluation.review_score is None


async def test_duplicate_submission_is_rejected(client, seeded, dispatcher, db_session):
    first = await client.post("/api/submit-test", json=_payload(seeded))
    assert first.status_code == 201

    second = await client.post("/api/submit-test", json=_payload(seeded))

    assert second.status_code == 400
    assert second.json() == {
        "status": "error",
        "msg": "You have already submitted this test",
        "error_code": "DUPLICATE_SUBMISSION",
    }
    assert await _count(db_session, Submission.id) == 1
    assert await _count(db_session, TestEvaluation.id) == 1
    assert len(dispatcher.dispatched) == 1


async def test_unknown_test_returns_404(client, seeded):
    resp = await client.post("/api/submit-test", json=_payload(seeded, testId=9999))

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"


async def test_unknown_student_returns_404(client, seeded):
    resp = await client.post("/api/submit-test", json=_payload(seeded, studentId=9999))

    assert resp.status_code == 404


async def test_foreign_question_is_rejected(client, seeded, db_session):
    body = _payload(seeded, answers=[{"questionId": 9999, "answerText": "Answer"}])

    resp = await client.post("/api/submit-test", json=body)

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_SUBMISSION"
    assert await _count(db_session, Submission.id) == 0


async def test_repeated_question_is_rejected(client, seeded):
    qid = seeded.question_ids[0]
    body = _payload(
        seeded,
        answers=[{"questionId": qid, "answerText": "One"}, {"questionId": qid, "answerText": "Two"}],
    )

    resp = await client.post("/api/submit-test", json=body)

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_SUBMISSION"


async def test_empty_answers_are_rejected(client, seeded, dispatcher):
    resp = await client.post("/api/submit-test", json=_payload(seeded, answers=[]))

    assert resp.status_code == 400
    assert resp.json()["msg"] == "At least one answer is required"
    assert dispatcher.dispatched == []


async def test_malformed_body_returns_validation_envelope(client):
    resp = await client.post("/api/submit-test", json={"answers": []})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in body["details"]} == {"testId", "studentId"}


async def test_submission_details(client, seeded):
    submission_id = (await client.post("/api/submit-test", json=_payload(seeded))).json()["submissionId"]

    resp = await client.get(f"/api/submission-details/{submission_id}")

    assert resp.status_code == 200
    submission = resp.json()["submission"]
    assert submission["test_name"] == "Persuasive Writing"
    assert submission["student_email"] == "student@example.com"
    assert submission["teacher_email"] == "teacher@example.com"
    assert submission["evaluation_status"] == "pending"
    assert [qa["question_order"] for qa in submission["questions_and_answers"]] == [1, 2]
    assert submission["questions_and_answers"][1]["answer"] == "My grandmother's kitchen."


async def test_submission_details_unknown_returns_404(client, seeded):
    resp = await client.get("/api/submission-details/9999")

    assert resp.status_code == 404


async def test_test_and_student_submission_lists(client, seeded, make_submission):
    other = await make_submission(
        student_email="other@example.com",
        evaluation_status=EvaluationStatus.done,
        review_score=71,
    )
    mine = (await client.post("/api/submit-test", json=_payload(seeded))).json()["submissionId"]

    by_test = (await client.get(f"/api/test-submissions/{seeded.test_id}")).json()["submissions"]
    assert {s["submission_id"] for s in by_test} == {other, mine}
    scored = next(s for s in by_test if s["submission_id"] == other)
    assert scored["evaluation_status"] == "done"
    assert scored["review_score"] == 71

    by_student = (await client.get(f"/api/student-submissions/{seeded.student_id}")).json()["submissions"]
    assert [s["submission_id"] for s in by_student] == [mine]
    assert by_student[0]["test_code"] == "PERS01"

    missing = await client.get("/api/test-submissions/9999")
    assert missing.status_code == 404
