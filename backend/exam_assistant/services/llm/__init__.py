"""
LLM Provider Abstraction Layer

A provider-neutral chat interface with one OpenAI-compatible implementation,
shared by the intent classifier and the response generator.
"""

from exam_assistant.services.llm.base import LLMProvider
from exam_assistant.services.llm.openai_chat import OpenAIChatProvider

_provider: LLMProvider | None = None


def get_chat_provider() -> LLMProvider:
    """Get or create the chat provider singleton."""
    global _provider
    if _provider is None:
        _provider = OpenAIChatProvider()
    return _provider


__all__ = [
    "LLMProvider",
    "OpenAIChatProvider",
    "get_chat_provider",
]
