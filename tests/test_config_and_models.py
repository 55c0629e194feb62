import json

import pytest

from pipelines.config import Settings
from pipelines.errors import ClientInputError, ConfigurationError
from pipelines.models import (
    GenerationJob,
    GenerationRequest,
    JobStatus,
    TransformParameters,
    TransformRequest,
)


def test_settings_defaults_without_environment(tmp_path) -> None:
    settings = Settings.from_env({"CONFIG_PATH": str(tmp_path / "missing.json")})

    assert settings.freepik_api_key is None
    assert settings.stability_api_key is None
    assert settings.poll_max_attempts == 30
    assert settings.poll_interval_seconds == 1.0
    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.port == 10000
    assert settings.missing_keys() == ["FREEPIK_API_KEY", "STABILITY_API_KEY"]


def test_environment_overrides_config_file(tmp_path) -> None:
    config_path = tmp_path / "app_config.json"
    config_path.write_text(json.dumps({
        "poll_max_attempts": 10,
        "poll_interval_seconds": 2,
        "cors_origins": ["https://a.example"],
        "freepik_api_key": "should-be-ignored",
    }))

    settings = Settings.from_env({
        "CONFIG_PATH": str(config_path),
        "POLL_MAX_ATTEMPTS": "5",
        "STABILITY_API_KEY": "sk-123",
        "CORS_ORIGINS": "https://b.example, https://c.example",
    })

    assert settings.poll_max_attempts == 5
    assert settings.poll_interval_seconds == 2.0
    assert settings.cors_origins == ["https://b.example", "https://c.example"]
    assert settings.freepik_api_key is None
    assert settings.stability_api_key == "sk-123"


def test_blank_keys_are_treated_as_missing() -> None:
    settings = Settings(freepik_api_key="  ", stability_api_key="")

    assert settings.freepik_api_key is None
    assert settings.stability_api_key is None
    assert settings.missing_keys() == ["FREEPIK_API_KEY", "STABILITY_API_KEY"]


def test_invalid_config_file_is_a_configuration_error(tmp_path) -> None:
    config_path = tmp_path / "broken.json"
    config_path.write_text("{not json")

    with pytest.raises(ConfigurationError):
        Settings.from_env({"CONFIG_PATH": str(config_path)})


@pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t"])
def test_generation_request_rejects_blank_prompts(prompt) -> None:
    with pytest.raises(ClientInputError):
        GenerationRequest(prompt=prompt)


def test_generation_request_trims_prompt() -> None:
    assert GenerationRequest(prompt="  a red fox  ").prompt == "a red fox"


def test_transform_request_requires_both_fields() -> None:
    with pytest.raises(ClientInputError):
        TransformRequest(prompt="x", image=b"")
    with pytest.raises(ClientInputError):
        TransformRequest(prompt=" ", image=b"data")


def test_job_status_parsing_treats_unknown_states_as_pending() -> None:
    assert JobStatus.parse("COMPLETED") is JobStatus.COMPLETED
    assert JobStatus.parse("FAILED") is JobStatus.FAILED
    assert JobStatus.parse("IN_PROGRESS") is JobStatus.PENDING
    assert JobStatus.parse(None) is JobStatus.PENDING


def test_generation_job_keeps_only_usable_urls_in_order() -> None:
    job = GenerationJob.from_provider("t1", {
        "data": {"status": "COMPLETED", "generated": ["https://a", "", None, 7, "https://b"]}
    })

    assert job.status is JobStatus.COMPLETED
    assert job.images == ["https://a", "https://b"]


def test_generation_job_tolerates_missing_data() -> None:
    job = GenerationJob.from_provider("t1", {})

    assert job.status is JobStatus.PENDING
    assert job.images == []


def test_transform_parameters_render_provider_form_fields() -> None:
    fields = TransformParameters().to_form_fields("neon city")

    assert fields == {
        "init_image_mode": "IMAGE_STRENGTH",
        "image_strength": "0.35",
        "text_prompts[0][text]": "neon city",
        "text_prompts[0][weight]": "1",
        "cfg_scale": "7",
        "samples": "1",
        "steps": "50",
    }
