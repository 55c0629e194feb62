"""
Stability AI client for synchronous image-to-image requests.
"""

from typing import List, Optional

import httpx
import structlog

from .errors import ConfigurationError, ProviderError
from .models import TransformParameters

logger = structlog.get_logger()


class StabilityClient:
    """Client for the Stability SDXL image-to-image endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0"
    ):
        self.api_key = api_key
        self.client = http_client
        self.base_url = base_url.rstrip("/")
        self.endpoint = f"{self.base_url}/image-to-image"

    async def image_to_image(
        self,
        image: bytes,
        prompt: str,
        parameters: Optional[TransformParameters] = None
    ) -> List[str]:
        """
        Submit an init image and prompt, returning the base64 artifacts.

        Args:
            image: JPEG bytes of the init image
            prompt: Text prompt
            parameters: Provider tuning (defaults to TransformParameters())

        Returns:
            Base64 payloads in provider order, possibly empty

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On HTTP failure or a malformed body
        """
        if not self.api_key:
            raise ConfigurationError("API key not configured")

        parameters = parameters or TransformParameters()
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json"
        }
        files = {"init_image": ("image.jpg", image, "image/jpeg")}

        logger.info("stability_request_start",
                   endpoint=self.endpoint,
                   image_bytes=len(image),
                   steps=parameters.steps)

        try:
            response = await self.client.post(
                self.endpoint,
                headers=headers,
                data=parameters.to_form_fields(prompt),
                files=files
            )
        except httpx.RequestError as e:
            logger.error("stability_connection_error", endpoint=self.endpoint, error=str(e))
            raise ProviderError(f"Failed to connect to Stability AI: {str(e)}")

        if not response.is_success:
            logger.error("stability_http_error",
                        status_code=response.status_code,
                        response_text=response.text[:500])
            raise ProviderError(
                f"Stability AI error: {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from Stability AI: {str(e)}", body=response.text)

        artifacts = payload.get("artifacts") if isinstance(payload, dict) else None
        if not isinstance(artifacts, list):
            return []

        return [
            artifact["base64"]
            for artifact in artifacts
            if isinstance(artifact, dict) and artifact.get("base64")
        ]
