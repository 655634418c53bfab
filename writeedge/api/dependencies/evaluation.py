"""
Evaluation dependencies for FastAPI routes.

Both are overridable through ``app.dependency_overrides`` so tests can swap
the Gemini client and the dispatch strategy for doubles.
"""

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from writeedge.core.genai_client import get_gemini_model
from writeedge.db.deps import get_session_factory
from writeedge.services.evaluation.dispatch import BackgroundTaskDispatcher, WorkerDispatcher


def get_evaluation_model():
    """The generative model used to score writing."""
    return get_gemini_model()


def get_evaluation_dispatcher(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    model=Depends(get_evaluation_model),
):
    """
    Prefer the running worker; fall back to a request background task when
    the worker is disabled (EVALUATION_WORKER_ENABLED=false) or not started.
    """
    worker = getattr(request.app.state, "evaluation_worker", None)
    if worker is not None and worker.running:
        return WorkerDispatcher(worker)
    return BackgroundTaskDispatcher(background_tasks, session_factory, model)
