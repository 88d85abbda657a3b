"""Tests for the chatbot HTTP endpoints, with the service and auth overridden."""

import uuid
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from exam_assistant.core.database import get_db
from exam_assistant.core.security import create_access_token
from exam_assistant.main import app
from exam_assistant.models.user import User, UserRole
from exam_assistant.routers.auth import get_current_user, get_optional_user
from exam_assistant.routers.chatbot import valid_history
from exam_assistant.services.chatbot.errors import (
    ChatValidationError,
    IndexNotReady,
    RebuildFailure,
)
from exam_assistant.services.chatbot.schemas import Role
from exam_assistant.services.chatbot.service import AdminAnswer, ChatbotService, get_chatbot_service
from exam_assistant.services.chatbot.vector_index import RebuildReport


def make_user(role: UserRole, name: str) -> User:
    return User(
        id=uuid.uuid4(),
        name=name,
        email=f"{name.split()[-1].lower()}@college.edu",
        role=role,
        designation="Professor",
        available=True,
    )


ADMIN = make_user(UserRole.ADMIN, "Asha Admin")
RAO = make_user(UserRole.FACULTY, "Dr. Rao")


async def no_db():
    yield None


@pytest.fixture
def chatbot() -> Mock:
    service = Mock(spec=ChatbotService)
    service.answer_query.return_value = "Room A-101."
    service.answer_admin_query.return_value = AdminAnswer(
        answer="Semantic answer", matched_results=["exam"], top_similarity=0.9, generation=2
    )
    service.rebuild_index.return_value = RebuildReport(
        exams=2, allocations=3, room_allocations=2, inserted=5, skipped=2, failed=0, generation=1
    )
    service.index_status.return_value = {"state": "ready", "generation": 1, "document_count": 5}
    return service


@pytest.fixture
def client(chatbot):
    app.dependency_overrides[get_chatbot_service] = lambda: chatbot
    app.dependency_overrides[get_db] = no_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def login_as(user: User | None) -> None:
    app.dependency_overrides[get_optional_user] = lambda: user
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user


# ── /chatbot/query ────────────────────────────────────────────────────────────

def test_anonymous_query(client, chatbot) -> None:
    login_as(None)

    response = client.post("/chatbot/query", json={"query": "Where is A-101?", "sessionId": "s1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "answer": "Room A-101.", "sessionId": "s1"}
    kwargs = chatbot.answer_query.await_args.kwargs
    assert kwargs["role"] == Role.ANONYMOUS
    assert kwargs["user"] is None


def test_faculty_query_passes_identity_and_history(client, chatbot) -> None:
    login_as(RAO)

    response = client.post("/chatbot/query", json={
        "query": "my duties?",
        "history": [
            {"role": "user", "content": "hi"},
            {"role": "system", "content": "ignored"},
            "garbage",
            {"role": "assistant", "content": "hello"},
        ],
    })

    assert response.status_code == 200
    kwargs = chatbot.answer_query.await_args.kwargs
    assert kwargs["role"] == Role.FACULTY
    assert kwargs["user"].name == "Dr. Rao"
    assert [turn.content for turn in kwargs["history"]] == ["hi", "hello"]


def test_empty_query_is_bad_request(client, chatbot) -> None:
    login_as(None)
    chatbot.answer_query.side_effect = ChatValidationError("Query is required")

    response = client.post("/chatbot/query", json={"query": ""})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Query is required"}


@pytest.mark.parametrize("history", [None, "not a list", {"role": "user"}])
def test_valid_history_tolerates_junk(history) -> None:
    assert valid_history(history) == []


# ── /chatbot/admin ────────────────────────────────────────────────────────────

def test_admin_query_includes_debug_block(client, chatbot) -> None:
    login_as(ADMIN)

    response = client.post("/chatbot/admin", json={"query": "Midterm rooms"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["answer"] == "Semantic answer"
    assert body["_debug"] == {
        "matchedResults": ["exam"],
        "topSimilarity": 0.9,
        "generation": 2,
        "consistent": True,
    }


def test_admin_endpoint_requires_token(client) -> None:
    response = client.post("/chatbot/admin", json={"query": "Midterm rooms"})

    assert response.status_code == 401


def test_admin_endpoint_rejects_faculty(client, chatbot) -> None:
    login_as(RAO)

    response = client.post("/chatbot/admin", json={"query": "Midterm rooms"})

    assert response.status_code == 403
    chatbot.answer_admin_query.assert_not_awaited()


def test_index_not_ready_is_service_unavailable(client, chatbot) -> None:
    login_as(ADMIN)
    chatbot.answer_admin_query.side_effect = IndexNotReady("Database not ready")

    response = client.post("/chatbot/admin", json={"query": "Midterm rooms"})

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "error": "The exam knowledge base is not available right now.",
    }


# ── /chatbot/cache-data & /chatbot/status ─────────────────────────────────────

def test_cache_data_reports_counts(client) -> None:
    login_as(ADMIN)

    response = client.post("/chatbot/cache-data")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Indexed 5 documents (2 skipped, 0 failed)"
    assert body["report"]["inserted"] == 5
    assert body["report"]["generation"] == 1


def test_cache_data_with_failed_documents_is_not_success(client, chatbot) -> None:
    login_as(ADMIN)
    chatbot.rebuild_index.return_value = RebuildReport(inserted=3, failed=2, generation=1)

    body = client.post("/chatbot/cache-data").json()

    assert body["success"] is False
    assert body["message"] == "Indexed 3 documents (0 skipped, 2 failed)"


def test_rebuild_failure_exposes_detail(client, chatbot) -> None:
    login_as(ADMIN)
    chatbot.rebuild_index.side_effect = RebuildFailure("Could not load exam data: connection refused")

    response = client.post("/chatbot/cache-data")

    assert response.status_code == 500
    assert response.json()["error"] == "Could not load exam data: connection refused"


def test_index_status(client) -> None:
    login_as(ADMIN)

    response = client.get("/chatbot/status")

    assert response.status_code == 200
    assert response.json()["document_count"] == 5


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "healthy"}


# ── Bearer tokens ─────────────────────────────────────────────────────────────

@pytest.fixture
def users_db():
    """Session stand-in that knows the two test users."""
    session = AsyncMock()
    session.get.side_effect = lambda model, user_id: {ADMIN.id: ADMIN, RAO.id: RAO}.get(user_id)

    async def _db():
        yield session

    app.dependency_overrides[get_db] = _db
    return session


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def test_query_with_token_resolves_caller(client, chatbot, users_db) -> None:
    response = client.post("/chatbot/query", json={"query": "my duties?"}, headers=bearer(RAO))

    assert response.status_code == 200
    assert chatbot.answer_query.await_args.kwargs["role"] == Role.FACULTY


def test_query_with_bad_token_is_unauthorized(client, chatbot, users_db) -> None:
    response = client.post(
        "/chatbot/query", json={"query": "my duties?"}, headers={"Authorization": "Bearer nope"}
    )

    assert response.status_code == 401
    chatbot.answer_query.assert_not_awaited()


def test_admin_token_reaches_admin_endpoint(client, users_db) -> None:
    response = client.post("/chatbot/admin", json={"query": "Midterm rooms"}, headers=bearer(ADMIN))

    assert response.status_code == 200


def test_me(client, users_db) -> None:
    response = client.get("/auth/me", headers=bearer(RAO))

    assert response.status_code == 200
    assert response.json()["name"] == "Dr. Rao"
    assert response.json()["role"] == "Faculty"
