"""
Migration presets

A preset is reusable migration knowledge for one source -> target pair:
the frameworks/versions, the ordered steps (each naming the agent role that
handles it) and the tools involved. Presets are plain YAML data; the
built-in ones live in migrator/data/presets.yaml and more can be loaded
from a user file.

Presets are keyed as "{framework}-{version}-to-{framework}-{version}",
e.g. "vue-2.x-to-vue-3.x".
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from migrator.utils.logging_config import log_agent
from .error_handler import ConfigurationError
from .plan import MigrationStep, check_unique_step_names


DEFAULT_PRESETS_FILE = Path(__file__).resolve().parent.parent / "data" / "presets.yaml"


def preset_key(source_framework: str, source_version: str, target_framework: str, target_version: str) -> str:
    return f"{source_framework}-{source_version}-to-{target_framework}-{target_version}"


class FrameworkSpec(BaseModel):
    framework: str
    version: str
    patterns: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class MigrationPreset(BaseModel):
    name: str
    description: str = ""
    source: FrameworkSpec
    target: FrameworkSpec
    steps: List[MigrationStep]
    tools: List[str] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("steps")
    @classmethod
    def _unique_orders(cls, steps: List[MigrationStep]) -> List[MigrationStep]:
        seen = {}
        for step in steps:
            if step.order in seen:
                raise ValueError(f"steps '{seen[step.order]}' and '{step.name}' share order {step.order}")
            seen[step.order] = step.name
        return sorted(check_unique_step_names(steps), key=lambda s: s.order)

    @property
    def key(self) -> str:
        return preset_key(self.source.framework, self.source.version,
                          self.target.framework, self.target.version)


class PresetManager:
    """Registry of migration presets keyed by source/target pair."""

    def __init__(self, include_defaults: bool = True):
        self._presets: Dict[str, MigrationPreset] = {}
        if include_defaults:
            self.load_file(DEFAULT_PRESETS_FILE)

    def add_preset(self, preset: Union[MigrationPreset, Mapping[str, Any]]) -> MigrationPreset:
        """
        Validate and register a preset (replacing one with the same key).

        Raises:
            ConfigurationError: invalid shape, duplicate step orders or names
        """
        if not isinstance(preset, MigrationPreset):
            try:
                preset = MigrationPreset.model_validate(dict(preset))
            except ValidationError as e:
                errors = e.errors(include_url=False)
                raise ConfigurationError(f"Invalid migration preset: {errors[0]['msg']}", errors=errors) from e
        self._presets[preset.key] = preset
        log_agent(f"[PRESETS] Registered preset {preset.key} ({len(preset.steps)} steps)", "DEBUG")
        return preset

    def get_preset(self, key: str) -> Optional[MigrationPreset]:
        return self._presets.get(key)

    def find_preset(self, framework: Optional[str], version: Optional[str],
                    target_framework: Optional[str] = None,
                    target_version: Optional[str] = None) -> Optional[MigrationPreset]:
        """Exact key lookup when the target is known, else the first preset for the source."""
        if not framework or not version:
            return None
        if target_framework and target_version:
            return self.get_preset(preset_key(framework, version, target_framework, target_version))
        for preset in self._presets.values():
            if preset.source.framework == framework and preset.source.version == version:
                return preset
        return None

    def list_presets(self) -> List[str]:
        return list(self._presets)

    def load_file(self, path: Union[str, Path]) -> List[MigrationPreset]:
        """
        Load presets from YAML: either a list or a mapping with a `presets` list.

        Raises:
            ConfigurationError: unreadable file or invalid content
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or []
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load presets from {path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("presets") or []
        if not isinstance(data, list):
            raise ConfigurationError(f"Presets file {path} must contain a list of presets")

        return [self.add_preset(item) for item in data]

    def __len__(self) -> int:
        return len(self._presets)
