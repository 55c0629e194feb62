"""
Image generation pipelines module.

This module provides:
- Freepik Mystic client and the text-to-image polling pipeline
- Stability AI client and the image-to-image transform pipeline
- Shared settings, error types and the bounded polling policy
"""

from .config import Settings
from .errors import (
    ClientInputError,
    ConfigurationError,
    GenerationTimeoutError,
    JobFailedError,
    PipelineError,
    ProviderError,
)
from .freepik_client import FreepikClient
from .image_to_image import ImageToImagePipeline
from .models import GenerationResult
from .polling import PollOutcome, PollPolicy
from .stability_client import StabilityClient
from .text_to_image import TextToImagePipeline

__all__ = [
    "Settings",
    "ClientInputError",
    "ConfigurationError",
    "GenerationTimeoutError",
    "JobFailedError",
    "PipelineError",
    "ProviderError",
    "FreepikClient",
    "ImageToImagePipeline",
    "GenerationResult",
    "PollOutcome",
    "PollPolicy",
    "StabilityClient",
    "TextToImagePipeline",
]
