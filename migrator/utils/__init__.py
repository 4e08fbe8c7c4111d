"""Utility modules: logging, AI service and LangChain model adapters."""
