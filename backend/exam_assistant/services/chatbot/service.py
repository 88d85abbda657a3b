"""
Chatbot Service

Wires the pipeline stages together for the HTTP layer:
- answer_query()       — classify → route → format → generate
- answer_admin_query() — embed → vector search → relevance filter → generate
- rebuild_index()      — snapshot the database, rebuild the vector index
- index_status()       — vector index state for operators
"""

import logging
from dataclasses import dataclass, field

from exam_assistant.core.config import Settings, get_settings
from exam_assistant.services.chatbot.classifier import IntentClassifier
from exam_assistant.services.chatbot.embeddings import EmbeddingGateway
from exam_assistant.services.chatbot.errors import (
    ChatValidationError,
    RebuildFailure,
    RetrievalError,
)
from exam_assistant.services.chatbot.formatter import (
    NO_RELEVANT_DATA,
    format_context,
    format_semantic_context,
    select_relevant,
)
from exam_assistant.services.chatbot.generator import ResponseGenerator
from exam_assistant.services.chatbot.intent_router import IntentRouter
from exam_assistant.services.chatbot.schemas import (
    ChatQuery,
    ConversationTurn,
    Role,
    UserRecord,
)
from exam_assistant.services.chatbot.vector_index import (
    RebuildReport,
    VectorIndexManager,
    get_index_manager,
)
from exam_assistant.services.exam_data import ExamDataService

logger = logging.getLogger(__name__)

PROCESSING_APOLOGY = (
    "I'm sorry, I encountered an error while processing your query. Please try again."
)


@dataclass
class AdminAnswer:
    answer: str
    matched_results: list[str] = field(default_factory=list)
    top_similarity: float | None = None
    generation: int = 0
    consistent: bool = True


class ChatbotService:
    def __init__(
        self,
        data: ExamDataService | None = None,
        index: VectorIndexManager | None = None,
        classifier: IntentClassifier | None = None,
        router: IntentRouter | None = None,
        generator: ResponseGenerator | None = None,
        embedder: EmbeddingGateway | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.data = data or ExamDataService()
        self.index = index or get_index_manager()
        self.embedder = embedder or self.index.embedder
        self.classifier = classifier or IntentClassifier()
        self.router = router or IntentRouter(self.data)
        self.generator = generator or ResponseGenerator(settings=self.settings)

    @staticmethod
    def _require_text(text: str | None) -> str:
        if not text or not text.strip():
            raise ChatValidationError("Query is required")
        return text.strip()

    async def answer_query(
        self,
        text: str,
        history: list[ConversationTurn] | None = None,
        user: UserRecord | None = None,
        role: Role = Role.ANONYMOUS,
    ) -> str:
        """
        Answer a chat query from structured lookups.

        Raises:
            ChatValidationError: empty query (before any retrieval)
        """
        query = ChatQuery(text=self._require_text(text), role=role, user=user)
        try:
            classification = await self.classifier.classify(query.text)
            bundle = await self.router.route(classification, query)
            context = format_context(bundle)
            return await self.generator.generate(
                query=query.text,
                context=context,
                history=history,
                role=query.role,
                name=query.acting_user_name,
            )
        except Exception:
            logger.exception("Error processing query")
            return PROCESSING_APOLOGY

    async def answer_admin_query(self, text: str) -> AdminAnswer:
        """
        Answer an admin query from the semantic index.

        Raises:
            ChatValidationError: empty query
            EmbeddingUnavailable: the query could not be embedded
            IndexNotReady: the vector collection does not exist yet
        """
        text = self._require_text(text)
        vector = await self.embedder.embed(text)
        found = await self.index.search(
            vector,
            k=self.settings.semantic_search_limit,
            min_similarity=self.settings.min_similarity_for_retrieval,
        )
        if not found.consistent:
            logger.warning("Search overlapped a rebuild (generation %d)", found.generation)

        relevant = select_relevant(found.results, self.settings.min_similarity_for_relevance)
        logger.info(
            "Admin search: %d candidates, %d relevant", len(found.results), len(relevant)
        )
        if not relevant:
            return AdminAnswer(
                answer=NO_RELEVANT_DATA,
                generation=found.generation,
                consistent=found.consistent,
            )

        answer = await self.generator.generate_admin(text, format_semantic_context(relevant))
        return AdminAnswer(
            answer=answer,
            matched_results=[r.document.type for r in relevant],
            top_similarity=relevant[0].similarity,
            generation=found.generation,
            consistent=found.consistent,
        )

    async def rebuild_index(self) -> RebuildReport:
        """
        Rebuild the vector index from the current database contents.

        Raises:
            RebuildFailure: the source data could not be loaded
            IndexNotReady: the vector collection does not exist yet
        """
        try:
            snapshot = await self.data.load_snapshot()
        except RetrievalError as e:
            raise RebuildFailure(f"Could not load exam data: {e}") from e
        return await self.index.rebuild(snapshot)

    def index_status(self) -> dict:
        return self.index.status()


# ── Singleton ─────────────────────────────────────────────────────────────────

_service: ChatbotService | None = None


def get_chatbot_service() -> ChatbotService:
    """Get or create the chatbot service singleton."""
    global _service
    if _service is None:
        _service = ChatbotService()
    return _service
