"""Tests for prompt templates."""

import pytest

from migrator.orchestrator.error_handler import PromptRenderError
from migrator.prompts import PromptLoader, render_template, template_variables


def test_render_substitutes_placeholders():
    rendered = render_template("Migrate {framework} to {target_version}", {"framework": "vue", "target_version": "3.x"})
    assert rendered == "Migrate vue to 3.x"


def test_missing_variable_is_rejected():
    with pytest.raises(PromptRenderError) as exc_info:
        render_template("File {file_path}: {error_message}", {"file_path": "src/App.vue"})
    assert exc_info.value.missing == ["error_message"]
    assert "error_message" in str(exc_info.value)


def test_substitution_is_single_pass():
    rendered = render_template("{a} and {b}", {"a": "{b}", "b": "B"})
    assert rendered == "{b} and B"


def test_json_braces_pass_through():
    template = 'Return JSON like {"valid": true} for {file_path}'
    assert template_variables(template) == ["file_path"]
    assert render_template(template, {"file_path": "x.js"}) == 'Return JSON like {"valid": true} for x.js'


def test_packaged_templates_load():
    loader = PromptLoader()
    templates = loader.load_templates("analysis_agent.yaml")
    assert set(templates) == {"project_analysis", "dependency_analysis", "file_analysis"}

    assert "Task: {task}" in loader.load_prompt("base_agent.yaml", "default")
    assert loader.load_prompt("fix_agent.yaml").startswith("You are an expert")


def test_format_prompt_renders_loaded_template():
    rendered = PromptLoader().format_prompt(
        "validation_agent.yaml", "code_validation",
        framework="react", target_version="18.x", file_path="src/index.js", code="render(<App />)",
    )
    assert "src/index.js" in rendered
    assert "render(<App />)" in rendered


def test_loader_errors(tmp_path):
    (tmp_path / "numbers.yaml").write_text("answer: 42\n", encoding="utf-8")
    loader = PromptLoader(str(tmp_path))

    with pytest.raises(FileNotFoundError):
        loader.load_prompt("missing.yaml")
    with pytest.raises(KeyError):
        loader.load_prompt("numbers.yaml", "question")
    with pytest.raises(ValueError):
        loader.load_prompt("numbers.yaml")
