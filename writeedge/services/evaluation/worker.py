import asyncio
import logging
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from writeedge.core.config import Settings, settings as default_settings
from writeedge.services.evaluation.generator import process_evaluation
from writeedge.services.evaluation.queue import due_submission_ids, recover_stale_claims

logger = logging.getLogger(__name__)


class EvaluationWorker:
    """In-process consumer of pending ``test_evaluations`` rows.

    Sweeps due rows every ``EVALUATION_POLL_INTERVAL_SECONDS`` or as soon as
    ``notify()`` is called. Work survives restarts because the rows do.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        model_provider: Callable[[], Any],
        config: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.model_provider = model_provider
        self.config = config
        self._task: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        await recover_stale_claims(self.session_factory, self.config.EVALUATION_STALE_CLAIM_SECONDS)
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="evaluation-worker")
        logger.info("Evaluation worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        self._wakeup.set()
        try:
            await self._task
        finally:
            self._task = None
            logger.info("Evaluation worker stopped")

    def notify(self) -> None:
        """Wake the loop early, e.g. right after a submission commits."""
        self._wakeup.set()

    async def run_once(self) -> int:
        """Release stale claims, then process every due row once.

        Returns how many attempts were made.
        """
        await recover_stale_claims(self.session_factory, self.config.EVALUATION_STALE_CLAIM_SECONDS)
        ids = await due_submission_ids(self.session_factory, self.config.EVALUATION_BATCH_SIZE)
        processed = 0
        for submission_id in ids:
            status = await process_evaluation(
                submission_id,
                session_factory=self.session_factory,
                model=self.model_provider(),
                config=self.config,
            )
            if status is not None:
                processed += 1
        return processed

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                processed = await self.run_once()
                if processed:
                    logger.debug(f"Evaluation sweep processed {processed} submission(s)")
            except Exception:
                logger.exception("Evaluation sweep failed")

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.config.EVALUATION_POLL_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()
