"""Ways of starting an evaluation attempt once a pending row is committed.

Dispatching is only a latency optimisation: the pending row is already
durable, and the claim in ``process_evaluation`` makes duplicate dispatches
harmless.
"""

import logging
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import async_sessionmaker

from writeedge.services.evaluation.generator import process_evaluation
from writeedge.services.evaluation.worker import EvaluationWorker

logger = logging.getLogger(__name__)


class WorkerDispatcher:
    """Wake the running in-process worker."""

    def __init__(self, worker: EvaluationWorker):
        self.worker = worker

    def dispatch(self, submission_id: int) -> None:
        logger.debug(f"Waking evaluation worker for submission {submission_id}")
        self.worker.notify()


class BackgroundTaskDispatcher:
    """Run the attempt as a FastAPI background task after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks, session_factory: async_sessionmaker, model: Any):
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self.model = model

    def dispatch(self, submission_id: int) -> None:
        logger.debug(f"Scheduling background evaluation for submission {submission_id}")
        self.background_tasks.add_task(
            process_evaluation,
            submission_id,
            session_factory=self.session_factory,
            model=self.model,
        )
