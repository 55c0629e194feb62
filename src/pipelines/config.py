"""
Application configuration.

Settings are read once from an optional JSON file and the process
environment, then passed explicitly to every pipeline.
"""

import json
import os
from typing import Any, Dict, List, Mapping, Optional

import structlog
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "./config/app_config.json"

# env var -> field name
ENV_FIELDS = {
    "FREEPIK_API_KEY": "freepik_api_key",
    "STABILITY_API_KEY": "stability_api_key",
    "FREEPIK_BASE_URL": "freepik_base_url",
    "STABILITY_BASE_URL": "stability_base_url",
    "PLACEHOLDER_BASE_URL": "placeholder_base_url",
    "POLL_MAX_ATTEMPTS": "poll_max_attempts",
    "POLL_INTERVAL_SECONDS": "poll_interval_seconds",
    "REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
    "MAX_UPLOAD_BYTES": "max_upload_bytes",
    "CORS_ORIGINS": "cors_origins",
    "HOST": "host",
    "PORT": "port",
}

SECRET_FIELDS = {"freepik_api_key", "stability_api_key"}


class Settings(BaseModel):
    """Runtime configuration shared by the server and function adapters."""

    freepik_api_key: Optional[str] = None
    stability_api_key: Optional[str] = None

    freepik_base_url: str = "https://api.freepik.com/v1/ai"
    stability_base_url: str = "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0"
    placeholder_base_url: str = "https://api.dicebear.com/7.x/shapes/png"

    poll_max_attempts: int = Field(30, ge=1)
    poll_interval_seconds: float = Field(1.0, ge=0.0)
    request_timeout_seconds: float = Field(120.0, gt=0.0)

    max_upload_bytes: int = Field(10 * 1024 * 1024, ge=1)
    target_size: int = Field(1024, ge=64)

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 10000

    @field_validator("freepik_api_key", "stability_api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings from CONFIG_PATH (if present), then environment overrides."""
        environ = os.environ if environ is None else environ
        values = load_config_file(environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH))

        for env_name, field_name in ENV_FIELDS.items():
            if env_name in environ:
                values[field_name] = environ[env_name]

        return cls(**values)

    def missing_keys(self) -> List[str]:
        """Names of the provider keys that are not set."""
        missing = []
        if not self.freepik_api_key:
            missing.append("FREEPIK_API_KEY")
        if not self.stability_api_key:
            missing.append("STABILITY_API_KEY")
        return missing


def load_config_file(path: str) -> Dict[str, Any]:
    """Load non-secret settings from a JSON file, falling back to defaults."""
    try:
        with open(path) as f:
            cfg = json.load(f)
    except FileNotFoundError:
        logger.info("config_not_found", path=path, using_defaults=True)
        return {}
    except json.JSONDecodeError as e:
        logger.error("config_invalid", path=path, error=str(e))
        raise ConfigurationError(f"Invalid config file {path}: {e}")

    if not isinstance(cfg, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    ignored = sorted(SECRET_FIELDS.intersection(cfg))
    if ignored:
        logger.warning("config_secrets_ignored", path=path, fields=ignored)

    logger.info("config_loaded", path=path)
    return {k: v for k, v in cfg.items() if k not in SECRET_FIELDS}
