from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import AsyncGenerator, List, Optional

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from writeedge.api.dependencies.evaluation import get_evaluation_dispatcher, get_evaluation_model
from writeedge.api.v1.routes.router import router as api_router
from writeedge.core.config import settings
from writeedge.core.exception_handlers import register_exception_handlers
from writeedge.db.deps import Base, get_db, get_session_factory
from writeedge.models.submission import Answer, Submission
from writeedge.models.test import Question, Test
from writeedge.models.user import User
from writeedge.services.evaluation.queue import new_pending_evaluation
from writeedge.utils.enums import EvaluationStatus, Role


VALID_EVALUATION = {
    "reviewScore": 82,
    "grammarScore": 8,
    "contentScore": 7,
    "creativityScore": 9,
    "summaryFeedback": "A clear, well organised argument.",
    "grammarIssues": ["'thier' should be 'their' (spelling)"],
    "suggestions": ["Add a counter-argument", "Vary sentence openings"],
    "finalRemarks": "Great progress, keep going.",
}


class FakeGeminiModel:
    """Stands in for GeminiClientWithRetry; replays queued texts or exceptions."""

    def __init__(self, responses: Optional[list] = None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.calls: List[str] = []

    async def generate_content_async(self, prompt, generation_config=None, safety_settings=None):
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else json.dumps(VALID_EVALUATION)
        if isinstance(item, Exception):
            raise item
        return SimpleNamespace(text=item)


class RecordingDispatcher:
    def __init__(self):
        self.dispatched: List[int] = []

    def dispatch(self, submission_id: int) -> None:
        self.dispatched.append(submission_id)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Ensure pytest-anyio uses asyncio for all async tests."""
    return "asyncio"


@pytest.fixture()
def valid_evaluation() -> dict:
    return dict(VALID_EVALUATION)


@pytest.fixture()
def test_settings():
    # No backoff by default so a rescheduled row is immediately due again
    return settings.model_copy(
        update={
            "EVALUATION_MAX_ATTEMPTS": 3,
            "EVALUATION_BACKOFF_SECONDS": 0.0,
            "EVALUATION_POLL_INTERVAL_SECONDS": 0.05,
            "EVALUATION_STALE_CLAIM_SECONDS": 60,
        }
    )


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'writeedge_test.sqlite'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def make_model():
    return FakeGeminiModel


@pytest.fixture()
def fake_model() -> FakeGeminiModel:
    return FakeGeminiModel()


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
async def seeded(session_factory) -> SimpleNamespace:
    async with session_factory() as session:
        teacher = User(email="teacher@example.com", first_name="Tia", last_name="Teacher", role=Role.teacher)
        student = User(email="student@example.com", first_name="Sam", last_name="Student", role=Role.student)
        test = Test(
            teacher=teacher,
            test_name="Persuasive Writing",
            test_code="PERS01",
            time_limit_minutes=30,
            questions=[
                Question(question_text="Argue for a four-day school week.", question_order=1, word_limit=300),
                Question(question_text="Describe your favourite place.", question_order=2),
            ],
        )
        session.add_all([teacher, student, test])
        await session.commit()
        return SimpleNamespace(
            teacher_id=teacher.id,
            student_id=student.id,
            test_id=test.id,
            question_ids=[q.id for q in test.questions],
        )


@pytest.fixture()
def make_submission(session_factory, seeded):
    """Insert a submission directly, optionally with its evaluation row in a given state."""

    async def _make(
        *,
        evaluation_status: Optional[EvaluationStatus] = EvaluationStatus.pending,
        attempts: int = 0,
        answers: Optional[List[str]] = None,
        student_email: Optional[str] = None,
        **evaluation_fields,
    ) -> int:
        answers = answers if answers is not None else ["Four days would cut burnout.", "The beach at dawn."]
        async with session_factory() as session:
            student_id = seeded.student_id
            if student_email:
                # One submission per (student, test), so extra submissions need extra students
                student = User(email=student_email, role=Role.student)
                session.add(student)
                await session.flush()
                student_id = student.id
            submission = Submission(
                test_id=seeded.test_id,
                student_id=student_id,
                answers=[
                    Answer(question_id=qid, answer_text=text)
                    for qid, text in zip(seeded.question_ids, answers)
                ],
            )
            if evaluation_status is not None:
                evaluation = new_pending_evaluation()
                evaluation.status = evaluation_status
                evaluation.attempts = attempts
                for key, value in evaluation_fields.items():
                    setattr(evaluation, key, value)
                submission.evaluation = evaluation
            session.add(submission)
            await session.commit()
            return submission.id

    return _make


@pytest.fixture()
def test_app(session_factory, fake_model) -> FastAPI:
    app = FastAPI()
    app.include_router(api_router, prefix="/api")
    register_exception_handlers(app)

    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        # One session per request, like production, so concurrent requests stay independent
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_evaluation_model] = lambda: fake_model
    return app


async def _client_for(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(test_app: FastAPI, dispatcher: RecordingDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """Client whose evaluation dispatches are only recorded, never run."""
    test_app.dependency_overrides[get_evaluation_dispatcher] = lambda: dispatcher
    async for async_client in _client_for(test_app):
        yield async_client


@pytest.fixture()
async def bg_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Client using the real background-task dispatcher.

    ASGITransport runs the response's background tasks before returning, so
    the evaluation attempt has finished by the time a request completes.
    """
    async for async_client in _client_for(test_app):
        yield async_client
