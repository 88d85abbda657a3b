"""
Vector Index Manager

Owns the single ChromaDB collection of exam summaries used by the admin
chatbot.

Lifecycle:
1. initialize() — at process start, drop any same-named collection and
   create it fresh with the cosine space (state: UNINITIALIZED → READY)
2. rebuild()    — delete every document, re-derive one document per exam,
   faculty allocation and room allocation, embed + insert concurrently
3. search()     — nearest documents by cosine similarity above a permissive
   retrieval threshold

Rebuilds are serialized by a lock. Each completed rebuild bumps a
generation counter; a search reports which generation it read and whether
a rebuild was running at the time, so callers can tell a possibly partial
result from a consistent one.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from exam_assistant.core.config import get_settings
from exam_assistant.services.chatbot.embeddings import EmbeddingGateway
from exam_assistant.services.chatbot.errors import (
    ChatbotError,
    IndexNotReady,
)
from exam_assistant.services.chatbot.schemas import RebuildSnapshot
from exam_assistant.services.chatbot.summarizer import (
    build_allocation_text,
    build_exam_text,
    build_room_allocation_text,
)

logger = logging.getLogger(__name__)

EXAM = "exam"
ALLOCATION = "allocation"
ROOM_ALLOCATION = "room_allocation"


class IndexState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass
class IndexedDocument:
    id: str
    content: str
    metadata: dict[str, Any]
    embedding: list[float] | None = None

    @property
    def type(self) -> str | None:
        return self.metadata.get("type")


@dataclass
class RetrievalResult:
    document: IndexedDocument
    similarity: float


@dataclass
class SearchResponse:
    results: list[RetrievalResult] = field(default_factory=list)
    generation: int = 0
    consistent: bool = True


@dataclass
class RebuildReport:
    exams: int = 0
    allocations: int = 0
    room_allocations: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0
    generation: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _date_text(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def _time_range(start: str | None, end: str | None) -> str:
    return f"{start or 'N/A'}-{end or 'N/A'}"


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be scalars and not None
    return {k: v for k, v in metadata.items() if v is not None}


def derive_documents(snapshot: RebuildSnapshot) -> tuple[list[IndexedDocument], int]:
    """
    Build one (not yet embedded) document per exam, allocation and room
    allocation. Records whose required joins cannot be resolved are skipped.

    Returns:
        (documents, skipped_count)
    """
    exam_map = {e.id: e for e in snapshot.exams}
    room_map = {r.id: r for r in snapshot.rooms}
    subject_map = {s.id: s for s in snapshot.subjects}
    faculty_map = {f.id: f for f in snapshot.faculty}

    subjects_by_exam: dict[Any, list] = {}
    for subject in snapshot.subjects:
        if subject.exam is not None:
            subjects_by_exam.setdefault(subject.exam.id, []).append(subject)

    documents: list[IndexedDocument] = []
    skipped = 0

    for exam in snapshot.exams:
        exam_subjects = subjects_by_exam.get(exam.id, [])
        exam_faculty = [faculty_map[ref.id] for ref in exam.faculty if ref.id in faculty_map]
        exam_rooms = [room_map[ref.id] for ref in exam.rooms if ref.id in room_map]
        semesters = [
            str(s.get("semester")) for s in exam.semesters
            if isinstance(s, dict) and s.get("semester") is not None
        ]
        documents.append(IndexedDocument(
            id=f"exam_{exam.id}",
            content=build_exam_text(exam, exam_subjects, exam_faculty, exam_rooms),
            metadata=_clean_metadata({
                "type": EXAM,
                "examId": str(exam.id),
                "name": exam.name,
                "year": exam.year,
                "semesters": ",".join(semesters),
            }),
        ))

    for alloc in snapshot.allocations:
        exam = exam_map.get(alloc.exam.id)
        subject = subject_map.get(alloc.subject.id)
        room = room_map.get(alloc.room.id)
        faculty = faculty_map.get(alloc.faculty.id)
        if not exam or not subject or not room or not faculty:
            skipped += 1
            continue
        documents.append(IndexedDocument(
            id=f"alloc_{alloc.id}",
            content=build_allocation_text(alloc, exam, subject, room, faculty),
            metadata=_clean_metadata({
                "type": ALLOCATION,
                "allocationId": str(alloc.id),
                "examId": str(exam.id),
                "subjectId": str(subject.id),
                "roomId": str(room.id),
                "facultyId": str(faculty.id),
                "date": _date_text(alloc.date),
                "time": _time_range(alloc.start_time, alloc.end_time),
            }),
        ))

    for room_alloc in snapshot.room_allocations:
        exam = exam_map.get(room_alloc.exam.id)
        room = room_map.get(room_alloc.room.id)
        subjects = [subject_map[ref.id] for ref in room_alloc.subjects if ref.id in subject_map]
        if not exam or not room or not subjects:
            skipped += 1
            continue
        documents.append(IndexedDocument(
            id=f"roomalloc_{room_alloc.id}",
            content=build_room_allocation_text(room_alloc, exam, room, subjects),
            metadata=_clean_metadata({
                "type": ROOM_ALLOCATION,
                "roomAllocationId": str(room_alloc.id),
                "examId": str(exam.id),
                "roomId": str(room.id),
                "subjectIds": ",".join(str(s.id) for s in subjects),
                "studentCount": len(room_alloc.students),
                "date": _date_text(room_alloc.date),
                "time": _time_range(room_alloc.start_time, room_alloc.end_time),
            }),
        ))

    return documents, skipped


class VectorIndexManager:
    """Lifecycle, rebuild and search for one named vector collection."""

    def __init__(
        self,
        embedder: EmbeddingGateway,
        client: ClientAPI | None = None,
        collection_name: str | None = None,
        concurrency: int | None = None,
    ):
        settings = get_settings()
        self.embedder = embedder
        self.collection_name = collection_name or settings.vector_collection_name
        self._client = client
        self._concurrency = max(1, concurrency or settings.rebuild_concurrency)
        self._collection: Collection | None = None
        self._rebuild_lock = asyncio.Lock()
        self._rebuilding = False
        self.generation = 0

    @property
    def state(self) -> IndexState:
        return IndexState.READY if self._collection is not None else IndexState.UNINITIALIZED

    def _require_ready(self) -> Collection:
        if self._collection is None:
            raise IndexNotReady("Database not ready")
        return self._collection

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create the collection, dropping an existing one of the same name."""
        if self._client is None:
            self._client = chromadb.PersistentClient(path=get_settings().chroma_persist_dir)

        # list_collections() returns names or Collection objects depending on version
        existing = {getattr(c, "name", c) for c in self._client.list_collections()}
        if self.collection_name in existing:
            self._client.delete_collection(self.collection_name)
            logger.info("Old collection '%s' dropped", self.collection_name)

        self._collection = self._client.create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine", "dimension": self.embedder.dimension},
            embedding_function=None,
        )
        logger.info(
            "Vector collection '%s' ready (dimension=%d, metric=cosine)",
            self.collection_name,
            self.embedder.dimension,
        )

    # ── Rebuild ──────────────────────────────────────────────────────────────

    async def rebuild(self, snapshot: RebuildSnapshot) -> RebuildReport:
        """
        Replace every document in the collection.

        Per-document failures (embedding or insert) are counted, not raised.
        """
        async with self._rebuild_lock:
            collection = self._require_ready()
            self._rebuilding = True
            try:
                existing_ids = collection.get()["ids"]
                if existing_ids:
                    collection.delete(ids=existing_ids)

                documents, skipped = derive_documents(snapshot)
                semaphore = asyncio.Semaphore(self._concurrency)
                outcomes = await asyncio.gather(
                    *(self._index_document(collection, doc, semaphore) for doc in documents)
                )

                self.generation += 1
                inserted = sum(1 for ok in outcomes if ok)
                report = RebuildReport(
                    exams=len(snapshot.exams),
                    allocations=len(snapshot.allocations),
                    room_allocations=len(snapshot.room_allocations),
                    inserted=inserted,
                    skipped=skipped,
                    failed=len(documents) - inserted,
                    generation=self.generation,
                )
            finally:
                self._rebuilding = False

        logger.info(
            "Rebuild #%d: %d inserted, %d skipped, %d failed",
            report.generation, report.inserted, report.skipped, report.failed,
        )
        return report

    async def _index_document(
        self,
        collection: Collection,
        document: IndexedDocument,
        semaphore: asyncio.Semaphore,
    ) -> bool:
        async with semaphore:
            try:
                document.embedding = await self.embedder.embed(document.content)
            except ChatbotError as e:
                logger.warning("Skipping %s: %s", document.id, e)
                return False

            try:
                collection.add(
                    ids=[document.id],
                    embeddings=[document.embedding],
                    documents=[document.content],
                    metadatas=[document.metadata],
                )
            except Exception:
                logger.exception("Failed to insert %s", document.id)
                return False
            return True

    # ── Search ───────────────────────────────────────────────────────────────

    async def search(
        self,
        query_vector: list[float],
        k: int,
        min_similarity: float,
    ) -> SearchResponse:
        """
        Up to k documents with cosine similarity >= min_similarity, best first.

        An empty collection or no qualifying match gives an empty result.
        """
        collection = self._require_ready()
        generation = self.generation
        overlapped = self._rebuilding

        count = collection.count()
        if count == 0 or k <= 0:
            return SearchResponse([], generation, consistent=not overlapped)

        raw = collection.query(
            query_embeddings=[query_vector],
            n_results=min(k, count),
            include=["documents", "metadatas", "distances"],
        )
        ids = raw["ids"][0] if raw.get("ids") else []
        docs = raw["documents"][0] if raw.get("documents") else []
        metas = raw["metadatas"][0] if raw.get("metadatas") else []
        distances = raw["distances"][0] if raw.get("distances") else []

        results = []
        for doc_id, content, metadata, distance in zip(ids, docs, metas, distances):
            # Chroma's cosine distance is 1 - cosine similarity
            similarity = 1.0 - float(distance)
            if similarity < min_similarity:
                continue
            results.append(RetrievalResult(
                document=IndexedDocument(
                    id=doc_id, content=content or "", metadata=dict(metadata or {})
                ),
                similarity=similarity,
            ))
        results.sort(key=lambda r: r.similarity, reverse=True)

        consistent = not overlapped and not self._rebuilding and self.generation == generation
        return SearchResponse(results, generation, consistent)

    def status(self) -> dict[str, Any]:
        """Return status info about the index for the /chatbot/status endpoint."""
        document_count = self._collection.count() if self._collection is not None else 0
        return {
            "state": self.state.value,
            "collection": self.collection_name,
            "generation": self.generation,
            "rebuilding": self._rebuilding,
            "document_count": document_count,
        }


# ── Singleton ─────────────────────────────────────────────────────────────────

_index_manager: VectorIndexManager | None = None


def get_index_manager() -> VectorIndexManager:
    """Get or create the vector index manager singleton."""
    global _index_manager
    if _index_manager is None:
        _index_manager = VectorIndexManager(EmbeddingGateway())
    return _index_manager
