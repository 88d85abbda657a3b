"""
OpenAI-compatible Chat Completions Provider

Talks to any server exposing /v1/chat/completions (LM Studio by default):
- client.chat.completions.create()
- messages = [system] + conversation
- response.choices[0].message.content

Transport errors surface as openai.OpenAIError; an empty completion raises
GenerationFailure.
"""

from openai import AsyncOpenAI

from exam_assistant.core.config import get_settings
from exam_assistant.services.chatbot.errors import GenerationFailure
from exam_assistant.services.llm.base import LLMProvider


class OpenAIChatProvider(LLMProvider):
    """Provider for an OpenAI-compatible Chat Completions endpoint."""

    provider_name = "openai_chat"

    def __init__(self, client: AsyncOpenAI | None = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(
            base_url=settings.llm_api_url,
            api_key=settings.llm_api_key,
            timeout=settings.request_timeout_seconds,
            max_retries=0,
        )

    async def chat(
        self,
        system_prompt: str,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 800,
        temperature: float = 0.7,
    ) -> str:
        chat_messages = [{"role": "system", "content": system_prompt}] + messages

        # Local servers understand max_tokens, not max_completion_tokens
        response = await self.client.chat.completions.create(
            model=model,
            messages=chat_messages,
            max_tokens=max_output_tokens,
            temperature=temperature,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationFailure("Empty response from Chat Completions API")
        return content.strip()
