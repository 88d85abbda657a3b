"""
Chatbot Router

- POST /query      — structured, intent-routed answers (anonymous allowed)
- POST /admin      — semantic search answers (admin only)
- POST /cache-data — rebuild the vector index (admin only)
- GET  /status     — vector index status (admin only)

Pipeline errors are ChatbotError subclasses, rendered by the handler
registered in main.py.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, ValidationError

from exam_assistant.models.user import User
from exam_assistant.routers.auth import AdminUser, OptionalUser
from exam_assistant.services.chatbot.schemas import ConversationTurn, Role
from exam_assistant.services.chatbot.service import ChatbotService, get_chatbot_service
from exam_assistant.services.exam_data import user_record

logger = logging.getLogger(__name__)

router = APIRouter()

Chatbot = Annotated[ChatbotService, Depends(get_chatbot_service)]


# Schemas
class ChatQueryRequest(BaseModel):
    query: str | None = None
    sessionId: str | None = None
    userId: str | None = None
    # Validated turn by turn; malformed entries are dropped
    history: Any = None


class ChatQueryResponse(BaseModel):
    success: bool = True
    answer: str
    sessionId: str | None = None


class AdminQueryRequest(BaseModel):
    query: str | None = None


class AdminDebug(BaseModel):
    matchedResults: list[str]
    topSimilarity: float | None = None
    generation: int
    consistent: bool


class AdminQueryResponse(BaseModel):
    success: bool = True
    answer: str
    debug: AdminDebug = Field(alias="_debug")

    class Config:
        populate_by_name = True


class CacheDataResponse(BaseModel):
    success: bool
    message: str
    report: dict[str, int]


def valid_history(history: Any) -> list[ConversationTurn]:
    """Keep only well-formed {role: user|assistant, content: str} turns."""
    if not isinstance(history, list):
        return []
    turns = []
    for item in history:
        try:
            turns.append(ConversationTurn.model_validate(item))
        except ValidationError:
            continue
    return turns


def _caller_role(user: User | None) -> Role:
    if user is None:
        return Role.ANONYMOUS
    return Role(user.role.value)


# Endpoints
@router.post("/query", response_model=ChatQueryResponse)
async def chatbot_query(payload: ChatQueryRequest, user: OptionalUser, chatbot: Chatbot):
    """Answer a question about exams, rooms, duties or seating."""
    answer = await chatbot.answer_query(
        payload.query,
        history=valid_history(payload.history),
        user=user_record(user) if user else None,
        role=_caller_role(user),
    )
    return ChatQueryResponse(answer=answer, sessionId=payload.sessionId)


@router.post("/admin", response_model=AdminQueryResponse, response_model_by_alias=True)
async def chatbot_admin(payload: AdminQueryRequest, admin: AdminUser, chatbot: Chatbot):
    """Answer an admin question from the semantic exam index."""
    result = await chatbot.answer_admin_query(payload.query)
    return AdminQueryResponse(
        answer=result.answer,
        debug=AdminDebug(
            matchedResults=result.matched_results,
            topSimilarity=result.top_similarity,
            generation=result.generation,
            consistent=result.consistent,
        ),
    )


@router.post("/cache-data", response_model=CacheDataResponse)
async def cache_data(admin: AdminUser, chatbot: Chatbot):
    """
    Rebuild the semantic index from the current exam database.

    Per-document failures are reported in the counts rather than failing
    the whole request.
    """
    logger.info("Index rebuild requested by %s", admin.email)
    report = await chatbot.rebuild_index()
    message = (
        f"Indexed {report.inserted} documents "
        f"({report.skipped} skipped, {report.failed} failed)"
    )
    return CacheDataResponse(success=report.ok, message=message, report=report.to_dict())


@router.get("/status")
async def index_status(admin: AdminUser, chatbot: Chatbot):
    """Check the status of the vector index."""
    return chatbot.index_status()
