"""
Text-to-image pipeline.

Flow:
1. Validate the prompt
2. Create a Freepik Mystic task
3. Poll the task until it yields image URLs, fails, or attempts run out
4. On any provider failure, return a deterministic placeholder instead
"""

import hashlib
import time
import traceback
import uuid
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx
import structlog

from .config import Settings
from .freepik_client import FreepikClient
from .models import GenerationJob, GenerationRequest, GenerationResult, JobStatus
from .polling import PollOutcome, PollPolicy

logger = structlog.get_logger()

ASPECT_RATIO = "square_1_1"
PLACEHOLDER_SIZE = 1024


def judge_job(job: GenerationJob) -> PollOutcome:
    """COMPLETED only counts once the provider has attached usable URLs."""
    if job.status is JobStatus.FAILED:
        return PollOutcome.FAILED
    if job.status is JobStatus.COMPLETED and job.images:
        return PollOutcome.SUCCEEDED
    return PollOutcome.CONTINUE


def placeholder_url(base_url: str, prompt: str, timestamp_ms: int) -> str:
    """Placeholder image URL seeded by a hash of prompt and timestamp."""
    seed = hashlib.sha256(f"{prompt}{timestamp_ms}".encode("utf-8")).hexdigest()
    return f"{base_url}?{urlencode({'seed': seed, 'size': PLACEHOLDER_SIZE})}"


class TextToImagePipeline:
    """
    Prompt -> image URLs via an asynchronous provider task.

    generate() never raises for a valid prompt: failures are logged and turned
    into a degraded placeholder result so the gallery always has something
    to render.
    """

    def __init__(
        self,
        client: FreepikClient,
        poll_policy: PollPolicy,
        placeholder_base_url: str,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            client: Freepik task client
            poll_policy: Attempt limit and delay for task polling
            placeholder_base_url: Base URL of the placeholder image service
            clock: Returns seconds since epoch; used for placeholder seeds
        """
        self.client = client
        self.poll_policy = poll_policy
        self.placeholder_base_url = placeholder_base_url
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient,
        poll_policy: Optional[PollPolicy] = None
    ) -> "TextToImagePipeline":
        client = FreepikClient(
            api_key=settings.freepik_api_key,
            http_client=http_client,
            base_url=settings.freepik_base_url
        )
        if poll_policy is None:
            poll_policy = PollPolicy(
                max_attempts=settings.poll_max_attempts,
                interval=settings.poll_interval_seconds
            )
        return cls(client, poll_policy, settings.placeholder_base_url)

    async def generate(self, prompt: Optional[str]) -> GenerationResult:
        """
        Generate images for a prompt.

        Raises:
            ClientInputError: If the prompt is empty (no provider call is made)
        """
        request = GenerationRequest(prompt=prompt)
        request_id = str(uuid.uuid4())
        start = time.time()

        logger.info("text2img_request", request_id=request_id, prompt=request.prompt[:100])

        try:
            images = await self._run(request.prompt, request_id)
        except Exception as e:
            logger.error("text2img_failed",
                        request_id=request_id,
                        error_type=type(e).__name__,
                        error=str(e),
                        provider_status=getattr(e, "provider_status", None),
                        traceback=traceback.format_exc(),
                        elapsed_seconds=round(time.time() - start, 2))
            return self._placeholder(request.prompt, request_id)

        logger.info("text2img_complete",
                   request_id=request_id,
                   n=len(images),
                   elapsed_seconds=round(time.time() - start, 2))

        return GenerationResult(content=f'Created: "{request.prompt}"', images=images)

    async def _run(self, prompt: str, request_id: str):
        task_id = await self.client.create_task(prompt, aspect_ratio=ASPECT_RATIO)
        logger.info("text2img_task_submitted", request_id=request_id, task_id=task_id)

        job = await self.poll_policy.run(
            fetch=lambda: self.client.get_task(task_id),
            judge=judge_job,
            request_id=request_id
        )
        return job.images

    def _placeholder(self, prompt: str, request_id: str) -> GenerationResult:
        timestamp_ms = int(self.clock() * 1000)
        url = placeholder_url(self.placeholder_base_url, prompt, timestamp_ms)

        logger.info("text2img_placeholder", request_id=request_id, url=url)

        return GenerationResult(
            content=f'Placeholder for: "{prompt}"',
            images=[url],
            degraded=True
        )
