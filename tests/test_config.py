"""Tests for run configuration."""

import pytest

from migrator.config import MigrationConfig, build_config, load_config
from migrator.orchestrator.error_handler import ConfigurationError


def test_defaults():
    config = load_config(environ={})
    assert config.dry_run is False
    assert config.max_retries == 3
    assert config.ai.enabled is True
    assert config.ai.provider == "bedrock"


def test_environment_mapping():
    config = load_config(environ={
        "MIGRATOR_DRY_RUN": "true",
        "MIGRATOR_MAX_RETRIES": "5",
        "MIGRATOR_SNAPSHOT_PATH": "/tmp/run.json",
        "MIGRATOR_AI_ENABLED": "false",
        "AWS_REGION": "eu-west-1",
        "MIGRATOR_AI_TEMPERATURE": "0.3",
        "MIGRATOR_VERBOSE": "",
    })
    assert config.dry_run is True
    assert config.max_retries == 5
    assert config.snapshot_path == "/tmp/run.json"
    assert config.verbose is False
    assert config.ai.enabled is False
    assert config.ai.region == "eu-west-1"
    assert config.ai.temperature == 0.3


def test_overrides_win_and_none_is_ignored():
    environ = {"MIGRATOR_DRY_RUN": "true", "BEDROCK_MODEL_ID": "model-a", "MIGRATOR_VERBOSE": "true"}
    config = load_config({"dry_run": False, "verbose": None, "ai": {"model": "model-b", "region": None}}, environ)

    assert config.dry_run is False
    assert config.verbose is True
    assert config.ai.model == "model-b"
    assert config.ai.region == "us-east-1"


@pytest.mark.parametrize("environ, field", [
    ({"MIGRATOR_AI_TEMPERATURE": "3"}, "ai.temperature"),
    ({"MIGRATOR_MAX_RETRIES": "0"}, "max_retries"),
    ({"MIGRATOR_DRY_RUN": "sometimes"}, "dry_run"),
])
def test_invalid_values_raise_configuration_error(environ, field):
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(environ=environ)
    assert field in str(exc_info.value)
    assert exc_info.value.errors


def test_unknown_ai_setting_is_rejected():
    with pytest.raises(ConfigurationError):
        build_config({"ai": {"model_name": "typo"}})


def test_component_options_exclude_ai_settings():
    config = MigrationConfig(dry_run=True, project_label="shop")
    options = config.component_options()
    assert "ai" not in options
    assert options["dry_run"] is True
    assert options["project_label"] == "shop"
