"""
Bounded polling for asynchronous provider jobs.

The policy owns attempt counting and the fixed delay; callers supply a fetch
(read the current state) and a judge (decide whether to stop). Sleeping goes
through an injectable callable so the loop does not assume a scheduler.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

from .errors import GenerationTimeoutError, JobFailedError, ProviderError

logger = structlog.get_logger()

T = TypeVar("T")


class PollOutcome(Enum):
    CONTINUE = "continue"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PollPolicy:
    """Fixed-interval retry policy with a hard attempt limit."""

    max_attempts: int = 30
    interval: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    transient: Tuple[Type[Exception], ...] = field(default=(ProviderError,))

    async def run(
        self,
        fetch: Callable[[], Awaitable[T]],
        judge: Callable[[T], PollOutcome],
        request_id: str = None
    ) -> T:
        """
        Poll until the judge reports success or failure.

        The delay is applied before every attempt, including the first.
        A transient error consumes the attempt without ending the loop.

        Returns:
            The fetched value the judge accepted.

        Raises:
            JobFailedError: If the judge reports FAILED.
            GenerationTimeoutError: If all attempts are used up.
        """
        for attempt in range(1, self.max_attempts + 1):
            await self.sleep(self.interval)

            try:
                value = await fetch()
            except self.transient as e:
                logger.warning("poll_attempt_failed",
                               request_id=request_id,
                               attempt=attempt,
                               max_attempts=self.max_attempts,
                               error=str(e))
                continue

            outcome = judge(value)
            if outcome is PollOutcome.SUCCEEDED:
                logger.info("poll_succeeded", request_id=request_id, attempt=attempt)
                return value
            if outcome is PollOutcome.FAILED:
                logger.warning("poll_job_failed", request_id=request_id, attempt=attempt)
                raise JobFailedError("Generation failed")

            logger.debug("poll_pending", request_id=request_id, attempt=attempt)

        raise GenerationTimeoutError("Generation timed out", attempts=self.max_attempts)
