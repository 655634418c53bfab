"""Client-side polling for submission evaluations.

Mirrors what the test report page does (poll every few seconds, bounded
number of attempts) but ends with an explicit outcome instead of an
indefinite loading state.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from writeedge.core.config import settings

logger = logging.getLogger(__name__)

EVALUATE_PATH = "/api/evaluate-test-submission"


class EvaluationPollError(Exception):
    def __init__(self, submission_id: int, message: str):
        super().__init__(message)
        self.submission_id = submission_id


class EvaluationFailedError(EvaluationPollError):
    """The server marked the evaluation as permanently failed."""

    def __init__(self, submission_id: int, error: Optional[str]):
        super().__init__(submission_id, f"Evaluation for submission {submission_id} failed: {error or 'unknown error'}")
        self.error = error


class EvaluationTimeoutError(EvaluationPollError):
    """The evaluation was still pending when the attempt budget ran out."""

    def __init__(self, submission_id: int, attempts: int, last_status: Optional[str]):
        super().__init__(
            submission_id,
            f"Evaluation for submission {submission_id} still {last_status or 'pending'} after {attempts} poll(s)",
        )
        self.attempts = attempts
        self.last_status = last_status


class EvaluationPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        delay: float = settings.POLL_DELAY_SECONDS,
        max_attempts: int = settings.POLL_MAX_ATTEMPTS,
        path: str = EVALUATE_PATH,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.delay = delay
        self.max_attempts = max_attempts
        self.path = path

    async def fetch(self, submission_id: int) -> Dict[str, Any]:
        """One poll; raises httpx.HTTPStatusError for non-2xx responses."""
        response = await self.client.post(self.path, json={"submissionId": submission_id})
        response.raise_for_status()
        return response.json()

    async def wait_for(self, submission_id: int) -> Dict[str, Any]:
        """Poll until the evaluation is ready and return it.

        Raises:
            EvaluationFailedError: the server reports a terminal failure
            EvaluationTimeoutError: still pending after ``max_attempts`` polls
        """
        last_status: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            data = await self.fetch(submission_id)

            if data.get("evaluation"):
                logger.info(f"Evaluation for submission {submission_id} ready after {attempt} poll(s)")
                return data["evaluation"]
            if data.get("failed"):
                raise EvaluationFailedError(submission_id, data.get("error"))

            last_status = data.get("status")
            if attempt < self.max_attempts:
                logger.debug(
                    f"Evaluation for submission {submission_id} is {last_status}; "
                    f"retrying in {self.delay}s ({attempt}/{self.max_attempts})"
                )
                await asyncio.sleep(self.delay)

        raise EvaluationTimeoutError(submission_id, self.max_attempts, last_status)
