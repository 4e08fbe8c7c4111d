"""YAML prompt templates for the migration agents."""

from .prompt_loader import PromptLoader, render_template, template_variables

__all__ = ["PromptLoader", "render_template", "template_variables"]
