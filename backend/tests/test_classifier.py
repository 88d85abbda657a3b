"""Tests for the intent classifier and its lenient output parsing."""

import pytest

from exam_assistant.services.chatbot.classifier import IntentClassifier, extract_json
from exam_assistant.services.chatbot.schemas import Intent, IntentClassification, TimePeriod


@pytest.fixture
def classifier(mock_provider) -> IntentClassifier:
    return IntentClassifier(provider=mock_provider, model="test-model")


def test_extract_json_from_code_block() -> None:
    content = 'Sure!\n```json\n{"intent": "room_info"}\n```\nHope that helps.'

    assert extract_json(content) == '{"intent": "room_info"}'


def test_extract_json_from_surrounding_prose() -> None:
    content = 'The answer is {"intent": "exam_info", "entities": {"exam_name": "Midterm"}} as requested.'

    assert extract_json(content) == '{"intent": "exam_info", "entities": {"exam_name": "Midterm"}}'


def test_extract_json_without_braces_returns_text() -> None:
    assert extract_json("  no json here ") == "no json here"


async def test_classify_parses_model_output(classifier, mock_provider) -> None:
    mock_provider.chat.return_value = (
        '```json\n{"intent": "faculty_allocation", "time_period": "future",'
        ' "entities": {"faculty_name": "Dr. Rao"}}\n```'
    )

    classification = await classifier.classify("What are Dr. Rao's duties next week?")

    assert classification.intent == Intent.FACULTY_ALLOCATION
    assert classification.time_period == TimePeriod.FUTURE
    assert classification.entity("faculty_name") == "Dr. Rao"
    kwargs = mock_provider.chat.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0.0


@pytest.mark.parametrize("content", ["not json at all", '{"intent": ', "[1, 2, 3]"])
async def test_unusable_output_falls_back_to_general(classifier, mock_provider, content) -> None:
    mock_provider.chat.return_value = content

    classification = await classifier.classify("hello")

    assert classification.intent == Intent.GENERAL
    assert classification.time_period == TimePeriod.NONE


async def test_provider_error_falls_back_to_general(classifier, mock_provider) -> None:
    mock_provider.chat.side_effect = ConnectionError("model server down")

    classification = await classifier.classify("hello")

    assert classification == IntentClassification()


def test_unknown_intent_and_period_are_coerced() -> None:
    classification = IntentClassification.model_validate(
        {"intent": "Weather", "time_period": "yesterday-ish"}
    )

    assert classification.intent == Intent.GENERAL
    assert classification.time_period == TimePeriod.NONE


def test_intent_is_case_insensitive() -> None:
    assert IntentClassification.model_validate({"intent": " ROOM_INFO "}).intent == Intent.ROOM_INFO


def test_flat_entities_are_collected() -> None:
    classification = IntentClassification.model_validate(
        {"intent": "room_info", "room_number": "A-101", "entities": {"building": "Main Block"}}
    )

    assert classification.entity("room_number") == "A-101"
    assert classification.entity("building") == "Main Block"


def test_camel_case_slots_are_accepted() -> None:
    classification = IntentClassification.model_validate(
        {"intent": "exam_info", "entities": {"examName": "Midterm", "subjectCode": "CS301"}}
    )

    assert classification.entity("exam_name") == "Midterm"
    assert classification.entity("subject_code") == "CS301"


def test_typed_slot_accessors() -> None:
    classification = IntentClassification.model_validate({"entities": {
        "semester": "3", "floor": "second", "date": "2025-03-17T00:00:00Z",
        "faculty_id": "not-a-uuid", "room_number": "   ", "building": ["A", "B"],
    }})

    assert classification.entity_int("semester") == 3
    assert classification.entity_int("floor") is None
    assert classification.entity_date().isoformat() == "2025-03-17"
    assert classification.entity_uuid("faculty_id") is None
    assert classification.entity("room_number") is None
    assert classification.entity("building") is None
