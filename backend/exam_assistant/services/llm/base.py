"""
Abstract base class for chat-completion providers.

Each provider implements the API-specific translation layer.
Prompt assembly and fallback messages are handled by the response generator.
"""

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Abstract base class for all LLM providers."""

    provider_name: str = "base"

    @abstractmethod
    async def chat(
        self,
        system_prompt: str,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 800,
        temperature: float = 0.7,
    ) -> str:
        """
        Send a system prompt plus conversation to the model.

        Args:
            system_prompt: The system prompt
            messages: List of message dicts with "role" and "content"
            model: The API model identifier
            max_output_tokens: Maximum tokens in the response
            temperature: Sampling temperature

        Returns:
            Raw text response from the LLM

        Raises:
            GenerationFailure: The model returned no content
        """
        ...
