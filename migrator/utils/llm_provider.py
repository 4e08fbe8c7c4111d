"""
LangChain model adapter

ChatModelGenerator turns any LangChain chat model into the
`async (prompt, options) -> str` generator the AIService expects.
create_chat_model builds the default Amazon Bedrock model; langchain_aws is
imported lazily so runs without AI never need AWS libraries configured.
"""

from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from migrator.config import AISettings
from migrator.orchestrator.error_handler import ConfigurationError
from migrator.orchestrator.events import EventChannel
from .ai_service import AIService
from .LLMLogger import LLMLogger
from .logging_config import log_agent, log_summary


def message_text(content: Any) -> str:
    """Flatten a chat message content (str or list of content blocks) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ChatModelGenerator:
    """Adapter: LangChain chat model -> AIService text generator."""

    def __init__(self, model: BaseChatModel, callbacks: Optional[List[Any]] = None):
        self.model = model
        self.callbacks = callbacks or []

    async def __call__(self, prompt: str, options: Dict[str, Any]) -> str:
        config = {"callbacks": self.callbacks} if self.callbacks else None
        response = await self.model.ainvoke([HumanMessage(content=prompt)], config=config)
        return message_text(response.content)


def create_chat_model(settings: AISettings, callbacks: Optional[List[Any]] = None) -> BaseChatModel:
    """
    Create the chat model for the configured provider.

    Raises:
        ConfigurationError: unknown provider
    """
    if settings.provider != "bedrock":
        raise ConfigurationError(f"Unsupported AI provider: {settings.provider}")

    from langchain_aws import ChatBedrock

    log_summary(f"[LLM] Using Bedrock model {settings.model} in {settings.region}")
    return ChatBedrock(
        model_id=settings.model,
        region_name=settings.region,
        callbacks=callbacks,
        model_kwargs={
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        },
    )


def create_ai_service(settings: AISettings, events: Optional[EventChannel] = None,
                      model: Optional[BaseChatModel] = None) -> AIService:
    """
    Build an AIService for the settings.

    A disabled configuration yields a disabled service. If no model is given
    the provider model is created, with LLMLogger attached.
    """
    if not settings.enabled:
        log_agent("[LLM] AI disabled by configuration")
        return AIService(None, settings, events)

    callbacks = [LLMLogger()]
    if model is None:
        model = create_chat_model(settings, callbacks=callbacks)
        callbacks = []
    return AIService(ChatModelGenerator(model, callbacks), settings, events)
