"""
Prompt Loader Utility
Loads agent prompt templates from YAML files and renders them
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from migrator.orchestrator.error_handler import PromptRenderError


PLACEHOLDER = re.compile(r"\{(\w+)\}")


def template_variables(template: str) -> List[str]:
    """Placeholder names used by a template, in order of first use."""
    seen = []
    for name in PLACEHOLDER.findall(template):
        if name not in seen:
            seen.append(name)
    return seen


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute every {name} placeholder with str(variables[name]).

    Substitution is a single pass, so values containing braces are never
    re-expanded. Only {word} placeholders are recognised; other braces
    (JSON examples) pass through untouched.

    Raises:
        PromptRenderError: if a placeholder has no value
    """
    missing = [name for name in template_variables(template) if name not in variables]
    if missing:
        raise PromptRenderError(f"Missing prompt variables: {', '.join(missing)}", missing=missing)
    return PLACEHOLDER.sub(lambda m: str(variables[m.group(1)]), template)


class PromptLoader:
    """Utility to load prompt templates from YAML files"""

    def __init__(self, prompts_dir: Optional[str] = None):
        if prompts_dir is None:
            # Default to the directory of this file
            self.prompts_dir = Path(__file__).parent
        else:
            self.prompts_dir = Path(prompts_dir)
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _load_file(self, filename: str) -> Dict[str, Any]:
        if filename not in self._cache:
            filepath = self.prompts_dir / filename
            if not filepath.exists():
                raise FileNotFoundError(f"Prompt file not found: {filepath}")
            with open(filepath, 'r', encoding='utf-8') as f:
                self._cache[filename] = yaml.safe_load(f) or {}
        return self._cache[filename]

    def load_prompt(self, filename: str, key: Optional[str] = None) -> str:
        """Load a single prompt from a YAML file"""
        data = self._load_file(filename)

        if key:
            if key not in data:
                raise KeyError(f"Key '{key}' not found in {filename}")
            return data[key]

        # If no key specified, return the first string value found
        for value in data.values():
            if isinstance(value, str):
                return value

        raise ValueError(f"No string prompt found in {filename}")

    def load_templates(self, filename: str) -> Dict[str, str]:
        """All string templates of a YAML file, keyed by name"""
        return {k: v for k, v in self._load_file(filename).items() if isinstance(v, str)}

    def format_prompt(self, filename: str, key: Optional[str] = None, **kwargs) -> str:
        """Load and render a prompt with variables"""
        return render_template(self.load_prompt(filename, key), kwargs)
