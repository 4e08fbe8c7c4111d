from langchain_core.callbacks import BaseCallbackHandler
from migrator.utils.ai_service import sanitize_prompt
from migrator.utils.logging_config import log_llm, log_summary, log_console


class LLMLogger(BaseCallbackHandler):
    """Logs chat model traffic to the LLM log; prompts are sanitized first."""

    def on_chat_model_start(self, serialized, messages, **kwargs):
        log_llm("LLM PROMPT START")
        log_llm(f"Model: {(serialized or {}).get('id', ['unknown'])}", "DEBUG")
        for i, batch in enumerate(messages):
            log_llm(f"--- PROMPT {i+1} ---", "DEBUG")
            for message in batch:
                log_llm(f"[{message.type}] {sanitize_prompt(str(message.content))}", "DEBUG")
            log_llm("--- END PROMPT ---", "DEBUG")

    def on_llm_start(self, serialized, prompts, **kwargs):
        log_llm("LLM PROMPT START")
        for i, prompt in enumerate(prompts):
            log_llm(f"--- PROMPT {i+1} ---", "DEBUG")
            log_llm(sanitize_prompt(prompt), "DEBUG")
            log_llm("--- END PROMPT ---", "DEBUG")

    def on_llm_end(self, response, **kwargs):
        log_llm("LLM RESPONSE RECEIVED")

        if hasattr(response, 'generations') and response.generations:
            for i, generation in enumerate(response.generations):
                log_llm(f"--- RESPONSE {i+1} ---", "DEBUG")
                for j, choice in enumerate(generation):
                    log_llm(f"Choice {j+1}: {choice.text}", "DEBUG")
                log_llm("--- END RESPONSE ---", "DEBUG")

        usage = (getattr(response, "llm_output", None) or {}).get("usage")
        if usage:
            log_llm(f"Token usage: {usage}", "DEBUG")

    def on_llm_error(self, error, **kwargs):
        log_llm(f"LLM ERROR: {error}", "ERROR")
        log_summary(f"LLM Error: {error}", "ERROR")
        log_console(f"LLM Error: {error}", "ERROR")
