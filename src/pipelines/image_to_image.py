"""
Image-to-image pipeline.

Normalizes an uploaded image and submits it with a prompt to the transform
provider in a single synchronous call. Unlike text-to-image, failures are
raised to the caller.
"""

import asyncio
import time
import uuid
from typing import Optional

import httpx
import structlog

from .config import Settings
from .errors import PipelineError, ProviderError
from .image_utils import normalize_image, to_data_uri, validate_upload
from .models import GenerationResult, TransformParameters, TransformRequest
from .stability_client import StabilityClient

logger = structlog.get_logger()


class ImageToImagePipeline:
    """Uploaded image + prompt -> one transformed image as a data URI."""

    def __init__(
        self,
        client: StabilityClient,
        parameters: Optional[TransformParameters] = None,
        target_size: int = 1024,
        max_upload_bytes: int = 10 * 1024 * 1024
    ):
        self.client = client
        self.parameters = parameters or TransformParameters()
        self.target_size = target_size
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "ImageToImagePipeline":
        client = StabilityClient(
            api_key=settings.stability_api_key,
            http_client=http_client,
            base_url=settings.stability_base_url
        )
        return cls(
            client,
            target_size=settings.target_size,
            max_upload_bytes=settings.max_upload_bytes
        )

    async def transform(self, prompt: Optional[str], image: Optional[bytes]) -> GenerationResult:
        """
        Transform an image according to a prompt.

        Args:
            prompt: Text prompt
            image: Raw JPEG/PNG upload bytes

        Returns:
            GenerationResult with a single data:image/png URI

        Raises:
            ClientInputError: Missing, oversized or undecodable input
            ConfigurationError: Stability API key not configured
            ProviderError: Provider failure or no artifact returned
        """
        request = TransformRequest(prompt=prompt, image=image)
        validate_upload(request.image, self.max_upload_bytes)

        request_id = str(uuid.uuid4())
        start = time.time()

        logger.info("img2img_request",
                   request_id=request_id,
                   prompt=request.prompt[:100],
                   upload_bytes=len(request.image))

        normalized = await asyncio.to_thread(normalize_image, request.image, self.target_size)

        logger.info("img2img_image_normalized",
                   request_id=request_id,
                   size=f"{self.target_size}x{self.target_size}",
                   jpeg_bytes=len(normalized))

        try:
            artifacts = await self.client.image_to_image(normalized, request.prompt, self.parameters)
        except PipelineError as e:
            logger.error("img2img_failed",
                        request_id=request_id,
                        error_type=type(e).__name__,
                        provider_status=getattr(e, "provider_status", None),
                        body=(getattr(e, "body", None) or "")[:500],
                        error=e.message)
            raise

        if not artifacts:
            logger.error("img2img_no_artifacts", request_id=request_id)
            raise ProviderError("No image generated")

        logger.info("img2img_complete",
                   request_id=request_id,
                   artifacts=len(artifacts),
                   elapsed_seconds=round(time.time() - start, 2))

        return GenerationResult(
            content=f'Transformed: "{request.prompt}"',
            images=[to_data_uri(artifacts[0])]
        )
