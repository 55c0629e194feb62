"""
Freepik Mystic API client for asynchronous text-to-image tasks.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from .errors import ConfigurationError, ProviderError
from .models import GenerationJob

logger = structlog.get_logger()


class FreepikClient:
    """
    Client for the Freepik Mystic task API.

    A task is created with POST /mystic and its state read with
    GET /mystic/{task_id}. Every failure surfaces as ProviderError.
    """

    def __init__(
        self,
        api_key: Optional[str],
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.freepik.com/v1/ai"
    ):
        """
        Initialize Freepik client.

        Args:
            api_key: Freepik API key (None is allowed; calls then raise ConfigurationError)
            http_client: Shared AsyncClient, owned by the caller
            base_url: API root, without the /mystic suffix
        """
        self.api_key = api_key
        self.client = http_client
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("API key not configured")
        return {
            "Accept": "application/json",
            "x-freepik-api-key": self.api_key
        }

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        headers = self._headers()
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error("freepik_connection_error", url=url, error=str(e))
            raise ProviderError(f"Failed to connect to Freepik API: {str(e)}")

        if not response.is_success:
            logger.error("freepik_http_error",
                        url=url,
                        status_code=response.status_code,
                        response_text=response.text[:500])
            raise ProviderError(
                f"Freepik API error: {response.status_code}",
                status_code=response.status_code,
                body=response.text
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from Freepik API: {str(e)}", body=response.text)

        if not isinstance(payload, dict):
            raise ProviderError("Unexpected Freepik response shape", body=response.text)
        return payload

    @staticmethod
    def _data(payload: Dict[str, Any]) -> Dict[str, Any]:
        """The `data` envelope; anything but an object is a malformed reply."""
        data = payload.get("data")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ProviderError("Unexpected Freepik response shape", body=str(payload)[:500])
        return data

    async def create_task(self, prompt: str, aspect_ratio: str = "square_1_1") -> str:
        """
        Submit a generation task.

        Returns:
            The provider task id

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On HTTP failure or a response without task_id
        """
        payload = await self._request(
            "POST",
            f"{self.base_url}/mystic",
            json={"prompt": prompt, "aspect_ratio": aspect_ratio}
        )

        task_id = self._data(payload).get("task_id")
        if not task_id:
            raise ProviderError("No task_id received", body=str(payload)[:500])

        logger.info("freepik_task_created", task_id=task_id)
        return str(task_id)

    async def get_task(self, task_id: str) -> GenerationJob:
        """Fetch the current state of a task."""
        payload = await self._request("GET", f"{self.base_url}/mystic/{task_id}")
        self._data(payload)  # rejects a non-object envelope
        return GenerationJob.from_provider(task_id, payload)
