"""
Run configuration

MigrationConfig holds the options of one run and AISettings those of the AI
service. load_config() reads MIGRATOR_* environment variables (after
load_dotenv) and merges explicit overrides on top. Validation failures
surface as ConfigurationError.

Environment variables:
    MIGRATOR_DRY_RUN, MIGRATOR_VERBOSE, MIGRATOR_MAX_RETRIES,
    MIGRATOR_STOP_ON_ERROR, MIGRATOR_RUN_TESTS, MIGRATOR_AUTO_SNAPSHOT,
    MIGRATOR_SNAPSHOT_PATH, MIGRATOR_PRESETS_FILE,
    MIGRATOR_AI_ENABLED, MIGRATOR_AI_PROVIDER, BEDROCK_MODEL_ID, AWS_REGION,
    MIGRATOR_AI_MAX_TOKENS, MIGRATOR_AI_TEMPERATURE, MIGRATOR_AI_MAX_RETRIES,
    MIGRATOR_AI_TIMEOUT, MIGRATOR_AI_MAX_PROMPT_LENGTH
"""

import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from migrator.orchestrator.error_handler import ConfigurationError


DEFAULT_BEDROCK_MODEL_ID = "us.anthropic.claude-3-5-sonnet-20241022-v2:0"


class AISettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    provider: str = "bedrock"
    model: str = DEFAULT_BEDROCK_MODEL_ID
    region: str = "us-east-1"
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    max_retries: int = 3
    timeout: float = Field(default=60, gt=0)  # seconds
    max_prompt_length: int = Field(default=8000, gt=100)


class MigrationConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    dry_run: bool = False
    verbose: bool = False
    max_retries: int = Field(default=3, ge=1)
    stop_on_error: bool = True
    run_tests: bool = False
    auto_snapshot: bool = False
    snapshot_path: Optional[str] = None
    presets_file: Optional[str] = None
    ai: AISettings = Field(default_factory=AISettings)

    def component_options(self) -> Dict[str, Any]:
        """Options handed to components (everything except AI settings)."""
        return self.model_dump(exclude={"ai"})


_ENV_FIELDS = {
    "MIGRATOR_DRY_RUN": "dry_run",
    "MIGRATOR_VERBOSE": "verbose",
    "MIGRATOR_MAX_RETRIES": "max_retries",
    "MIGRATOR_STOP_ON_ERROR": "stop_on_error",
    "MIGRATOR_RUN_TESTS": "run_tests",
    "MIGRATOR_AUTO_SNAPSHOT": "auto_snapshot",
    "MIGRATOR_SNAPSHOT_PATH": "snapshot_path",
    "MIGRATOR_PRESETS_FILE": "presets_file",
}

_AI_ENV_FIELDS = {
    "MIGRATOR_AI_ENABLED": "enabled",
    "MIGRATOR_AI_PROVIDER": "provider",
    "BEDROCK_MODEL_ID": "model",
    "AWS_REGION": "region",
    "MIGRATOR_AI_MAX_TOKENS": "max_tokens",
    "MIGRATOR_AI_TEMPERATURE": "temperature",
    "MIGRATOR_AI_MAX_RETRIES": "max_retries",
    "MIGRATOR_AI_TIMEOUT": "timeout",
    "MIGRATOR_AI_MAX_PROMPT_LENGTH": "max_prompt_length",
}


def _from_env(mapping: Mapping[str, str], environ: Mapping[str, str]) -> Dict[str, str]:
    return {field: environ[var] for var, field in mapping.items() if environ.get(var) not in (None, "")}


def build_config(data: Optional[Mapping[str, Any]] = None) -> MigrationConfig:
    """
    Validate a raw config mapping.

    Raises:
        ConfigurationError: with the pydantic field errors attached
    """
    try:
        return MigrationConfig.model_validate(dict(data or {}))
    except ValidationError as e:
        errors = e.errors(include_url=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in errors)
        raise ConfigurationError(f"Invalid migration configuration ({fields})", errors=errors) from e


def load_config(overrides: Optional[Mapping[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> MigrationConfig:
    """
    Build the run configuration from the environment plus explicit overrides.

    Args:
        overrides: Values that win over the environment (None values ignored)
        environ: Environment mapping; defaults to os.environ after load_dotenv()
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    data: Dict[str, Any] = _from_env(_ENV_FIELDS, environ)
    ai_data: Dict[str, Any] = _from_env(_AI_ENV_FIELDS, environ)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "ai":
            ai_data.update({k: v for k, v in dict(value).items() if v is not None})
        else:
            data[key] = value

    data["ai"] = ai_data
    return build_config(data)
