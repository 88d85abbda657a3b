"""
Intent Classifier

Asks the chat model to label a query with one of the router's intents, a
time period and any entity slots it mentions, as a small JSON object.

Why this is best-effort:
- small local models often wrap JSON in prose or code fences
- any slot may be missing or malformed
Anything unusable falls back to the "general" intent, which still produces
a keyword search context.
"""

import json
import logging
import re

from exam_assistant.core.config import get_settings
from exam_assistant.services.chatbot.schemas import IntentClassification
from exam_assistant.services.llm import LLMProvider, get_chat_provider

logger = logging.getLogger(__name__)

CLASSIFY_PROMPT = """You classify questions sent to a university exam management assistant.
Reply with ONLY a JSON object, no explanation:
{
  "intent": one of "exam_info", "faculty_allocation", "room_info", "student_allocation", "faculty_info", "system_stats", "general",
  "time_period": one of "past", "present", "future", "none",
  "entities": {
    "exam_name", "exam_year", "semester", "subject_name", "subject_code",
    "faculty_name", "email", "designation", "room_number", "building",
    "floor", "student", "date" (YYYY-MM-DD)
  }
}
Only include entities that the question actually mentions."""


def extract_json(content: str) -> str:
    """Extract JSON from a response, handling markdown code blocks."""
    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    matches = re.findall(code_block_pattern, content)
    if matches:
        return matches[0].strip()

    json_pattern = r"\{[\s\S]*\}"
    matches = re.findall(json_pattern, content)
    if matches:
        return max(matches, key=len)

    return content.strip()


class IntentClassifier:
    def __init__(self, provider: LLMProvider | None = None, model: str | None = None):
        self.provider = provider or get_chat_provider()
        self.model = model or get_settings().classifier_model

    async def classify(self, text: str) -> IntentClassification:
        """
        Classify a query.

        Returns:
            The parsed classification, or the "general" fallback when the
            model call or its output is unusable
        """
        try:
            content = await self.provider.chat(
                system_prompt=CLASSIFY_PROMPT,
                messages=[{"role": "user", "content": text}],
                model=self.model,
                max_output_tokens=200,
                temperature=0.0,
            )
            data = json.loads(extract_json(content))
        except Exception as e:
            logger.warning("Classification failed, using general intent: %s", e)
            return IntentClassification()

        classification = IntentClassification.model_validate(data)
        logger.info(
            "Classified intent=%s time_period=%s entities=%s",
            classification.intent.value,
            classification.time_period.value,
            sorted(classification.entities),
        )
        return classification
