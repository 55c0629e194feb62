"""
Request/response models for the generation pipelines.

All values are transient: they live for a single HTTP call and are never stored.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ClientInputError


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def require_prompt(prompt: Optional[str], message: str = "Prompt is required") -> str:
    """Return the trimmed prompt or raise ClientInputError when it is blank."""
    if not isinstance(prompt, str) or not prompt.strip():
        raise ClientInputError(message)
    return prompt.strip()


# ============================================================================
# PIPELINE VALUES
# ============================================================================

class GenerationRequest(BaseModel):
    """Text-to-image generation request."""
    prompt: str

    @field_validator("prompt", mode="before")
    @classmethod
    def validate_prompt(cls, v):
        return require_prompt(v)


class TransformRequest(BaseModel):
    """Image-to-image transform request."""
    prompt: str
    image: bytes

    @field_validator("prompt", mode="before")
    @classmethod
    def validate_prompt(cls, v):
        return require_prompt(v, "Image and prompt are required")

    @field_validator("image", mode="before")
    @classmethod
    def validate_image(cls, v):
        if not v:
            raise ClientInputError("Image and prompt are required")
        return v


class JobStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        # CREATED, IN_PROGRESS and anything unknown are still in flight
        if value in (cls.COMPLETED.value, cls.FAILED.value):
            return cls(value)
        return cls.PENDING


class GenerationJob(BaseModel):
    """Snapshot of an asynchronous provider task."""
    task_id: str
    status: JobStatus = JobStatus.PENDING
    images: List[str] = Field(default_factory=list)

    @classmethod
    def from_provider(cls, task_id: str, payload: Dict[str, Any]) -> "GenerationJob":
        """Build a job from a `{data: {status, generated}}` status body."""
        data = payload.get("data") or {}
        generated = data.get("generated")
        images = []
        if isinstance(generated, list):
            images = [url for url in generated if isinstance(url, str) and len(url) > 0]
        return cls(
            task_id=task_id,
            status=JobStatus.parse(data.get("status")),
            images=images
        )


class GenerationResult(BaseModel):
    """Result handed back to the caller of either pipeline."""
    content: str
    images: List[str]
    timestamp: str = Field(default_factory=utc_timestamp)
    degraded: bool = False


class TransformParameters(BaseModel):
    """Fixed tuning sent with every image-to-image submission."""
    init_image_mode: str = "IMAGE_STRENGTH"
    image_strength: float = Field(0.35, ge=0.0, le=1.0)
    prompt_weight: float = 1
    cfg_scale: float = 7
    samples: int = Field(1, ge=1)
    steps: int = Field(50, ge=1)

    def to_form_fields(self, prompt: str) -> Dict[str, str]:
        """Render as multipart form fields, numbers without trailing `.0`."""
        def fmt(value):
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value)

        return {
            "init_image_mode": self.init_image_mode,
            "image_strength": fmt(self.image_strength),
            "text_prompts[0][text]": prompt,
            "text_prompts[0][weight]": fmt(self.prompt_weight),
            "cfg_scale": fmt(self.cfg_scale),
            "samples": fmt(self.samples),
            "steps": fmt(self.steps),
        }


# ============================================================================
# HTTP MODELS
# ============================================================================

class TextToImageRequest(BaseModel):
    """Inbound body of POST /api/text-to-image. Validation happens in the pipeline."""
    prompt: Optional[str] = None


class GenerationResponse(BaseModel):
    """Outbound body shared by both endpoints."""
    content: str
    images: List[str]
    timestamp: str

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResponse":
        return cls(content=result.content, images=result.images, timestamp=result.timestamp)


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    providers: Dict[str, bool]
