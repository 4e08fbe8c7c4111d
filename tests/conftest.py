"""Pytest configuration and shared fixtures."""

import json

import pytest
from langchain_core.language_models import FakeListChatModel

from migrator.config import AISettings
from migrator.orchestrator.state import WorkflowContext
from migrator.orchestrator.tool_executor import ToolExecutor
from migrator.utils.ai_service import AIService
from migrator.utils.llm_provider import ChatModelGenerator


VUE2_PACKAGE = {
    "name": "legacy-shop",
    "version": "1.0.0",
    "scripts": {"build": "vue-cli-service build", "test": "echo \"Error: no test specified\" && exit 1"},
    "dependencies": {
        "vue": "^2.6.14",
        "vue-router": "^3.5.1",
        "vuex": "^3.6.2",
        "vue-template-compiler": "^2.6.14",
    },
    "devDependencies": {"webpack": "^4.46.0"},
}


@pytest.fixture
def vue2_project(tmp_path):
    """A small Vue 2 project on disk.

    Returns:
        Path of the project root.
    """
    root = tmp_path / "legacy-shop"
    (root / "src" / "components").mkdir(parents=True)
    (root / "node_modules" / "vue").mkdir(parents=True)
    (root / ".git").mkdir()

    (root / "package.json").write_text(json.dumps(VUE2_PACKAGE, indent=2), encoding="utf-8")
    (root / "src" / "main.js").write_text(
        "import Vue from 'vue'\nimport App from './App.vue'\n\nnew Vue({ render: h => h(App) }).$mount('#app')\n",
        encoding="utf-8",
    )
    (root / "src" / "App.vue").write_text(
        "<template>\n  <div id=\"app\"><hello /></div>\n</template>\n", encoding="utf-8"
    )
    (root / "src" / "components" / "Hello.vue").write_text(
        "<template>\n  <p>{{ msg }}</p>\n</template>\n", encoding="utf-8"
    )
    (root / "node_modules" / "vue" / "index.js").write_text("module.exports = {}\n", encoding="utf-8")
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return root


@pytest.fixture
def context(vue2_project) -> WorkflowContext:
    return WorkflowContext(str(vue2_project))


@pytest.fixture
def executor(context) -> ToolExecutor:
    return ToolExecutor(context, {})


@pytest.fixture
def fake_ai():
    """Factory for an AIService backed by FakeListChatModel with no backoff sleeps."""

    def build(responses, **settings) -> AIService:
        model = FakeListChatModel(responses=list(responses))
        service = AIService(ChatModelGenerator(model), AISettings(**settings))
        service.delays = []

        async def no_sleep(milliseconds):
            service.delays.append(milliseconds)

        service._delay = no_sleep
        return service

    return build


@pytest.fixture
def disabled_ai() -> AIService:
    return AIService(None, AISettings(enabled=False))
