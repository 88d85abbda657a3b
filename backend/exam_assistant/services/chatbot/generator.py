"""
Prompt Assembler & Response Generator

Builds the system prompt around a formatted context block and asks the chat
model for an answer.

Prompt layout:
1. role paragraph — Admin (everything), Faculty (addressed by name, own
   duties first) or a neutral assistant
2. fixed answering guidelines, appended verbatim
3. the context block

Messages sent: [system] + the last N history turns + [current query].
A failed or empty completion becomes a fixed apology; the raw error never
reaches the chat UI.
"""

import logging

from openai import OpenAIError

from exam_assistant.core.config import Settings, get_settings
from exam_assistant.services.chatbot.errors import GenerationFailure
from exam_assistant.services.chatbot.schemas import ConversationTurn, Role
from exam_assistant.services.llm import LLMProvider, get_chat_provider

logger = logging.getLogger(__name__)

APOLOGY = "I'm sorry, I encountered an error while generating a response. Please try again."

BASE_ROLE_PROMPT = "You are an intelligent assistant for a university exam management system."

ADMIN_ROLE_PROMPT = (
    " You are speaking with an administrator who manages the exam system."
    " You should provide comprehensive information about exams, rooms, faculty"
    " allocations, and student seating arrangements."
)

FACULTY_ROLE_PROMPT = (
    " You are speaking with a faculty member named {name}."
    " You should focus on information relevant to their exam duties, assigned"
    " rooms, and student allocations for their supervision."
    " For faculty, prioritize information about their own allocations and duties."
)

GUIDELINES = """Respond in a helpful, concise manner. Use the provided context information to answer the user's query accurately. If the context doesn't contain enough information to answer the query, politely indicate that you don't have that specific information.

Important guidelines:
1. Only provide information that's supported by the context data.
2. Don't make up information that's not in the context.
3. For dates and times, use the exact format provided in the context.
4. Keep responses clear and structured for easy understanding.
5. When listing multiple items, use numbered or bulleted lists for clarity.
6. If context shows no relevant data was found, politely tell the user that information isn't available."""

ADMIN_SEMANTIC_PROMPT = """You are an exam administration assistant. Strictly use ONLY the following information.
If data is missing, respond with "No data available".

RULES:
1. Be specific about dates, times, rooms, and faculty
2. For student counts, provide exact numbers
3. For room allocations, mention building and room number
4. Never invent information

{context}"""


def build_system_prompt(role: Role, name: str | None, context: str) -> str:
    prompt = BASE_ROLE_PROMPT
    if role == Role.ADMIN:
        prompt += ADMIN_ROLE_PROMPT
    elif role == Role.FACULTY and name:
        prompt += FACULTY_ROLE_PROMPT.format(name=name)
    return f"{prompt}\n\n{GUIDELINES}\n\n{context}"


def build_admin_system_prompt(context: str) -> str:
    return ADMIN_SEMANTIC_PROMPT.format(context=context)


def trim_history(history: list[ConversationTurn] | None, keep: int) -> list[dict]:
    """Most recent `keep` turns as chat messages; older turns are dropped."""
    if not history or keep <= 0:
        return []
    return [{"role": turn.role, "content": turn.content} for turn in history[-keep:]]


class ResponseGenerator:
    def __init__(self, provider: LLMProvider | None = None, settings: Settings | None = None):
        self.provider = provider or get_chat_provider()
        self.settings = settings or get_settings()

    async def generate(
        self,
        query: str,
        context: str,
        history: list[ConversationTurn] | None = None,
        role: Role = Role.ANONYMOUS,
        name: str | None = None,
    ) -> str:
        """Answer from the structured context. Never raises for model failures."""
        return await self._complete(
            system_prompt=build_system_prompt(role, name, context),
            messages=trim_history(history, self.settings.conversation_history_length)
            + [{"role": "user", "content": query}],
            max_output_tokens=self.settings.chat_max_tokens,
            temperature=self.settings.chat_temperature,
        )

    async def generate_admin(self, query: str, context: str) -> str:
        """Answer from semantic search context with the strict admin prompt."""
        return await self._complete(
            system_prompt=build_admin_system_prompt(context),
            messages=[{"role": "user", "content": query}],
            max_output_tokens=self.settings.admin_chat_max_tokens,
            temperature=self.settings.admin_chat_temperature,
        )

    async def _complete(
        self,
        system_prompt: str,
        messages: list[dict],
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        try:
            answer = await self.provider.chat(
                system_prompt=system_prompt,
                messages=messages,
                model=self.settings.chat_model,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
            )
        except (OpenAIError, GenerationFailure) as e:
            logger.error("Error generating response: %s", e)
            return APOLOGY

        logger.info("Generated %d chars with model=%s", len(answer), self.settings.chat_model)
        return answer
