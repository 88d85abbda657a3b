"""Test configuration and fixtures for the exam assistant tests.

Fixtures are organized by functionality:
- Constants
- Deterministic embeddings and mock model responses
- Record factories and a sample index snapshot
- Vector index fixtures (in-memory Chroma)
- Database fixtures (aiosqlite)
"""

import datetime as dt
import hashlib
import math
import random
import uuid
from unittest.mock import AsyncMock, Mock

import chromadb
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from exam_assistant.core.database import Base
from exam_assistant.models import (
    Allocation,
    Exam,
    Room,
    RoomAllocation,
    Subject,
    User,
    UserRole,
)
from exam_assistant.services.chatbot.embeddings import EmbeddingGateway
from exam_assistant.services.chatbot.schemas import (
    AllocationRecord,
    ExamRecord,
    RebuildSnapshot,
    Ref,
    RoomRecord,
    StudentAllocationRecord,
    SubjectRecord,
    UserRecord,
)
from exam_assistant.services.chatbot.vector_index import VectorIndexManager
from exam_assistant.services.exam_data import ExamDataService


class TestConstants:
    """Centralized test constants shared across test files."""

    EMBEDDING_DIMENSION = 16
    TODAY = dt.date(2025, 3, 10)
    NEXT_WEEK = dt.date(2025, 3, 17)
    LAST_WEEK = dt.date(2025, 3, 3)


class HashEmbeddings:
    """Stand-in for OpenAIEmbeddings without API calls.

    Generates deterministic unit vectors seeded by a hash of the text, so the
    same text always maps to the same vector.
    """

    def __init__(self, dimension: int = TestConstants.EMBEDDING_DIMENSION, fail_on: str | None = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: list[str] = []

    def vector(self, text: str) -> list[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = random.Random(seed)
        raw = [rng.gauss(0, 1) for _ in range(self.dimension)]
        norm = math.sqrt(sum(x * x for x in raw))
        return [x / norm for x in raw]

    async def aembed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise ConnectionError("embedding server unreachable")
        return self.vector(text)


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response."""
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


# ── Record factories ──────────────────────────────────────────────────────────

def make_room(room_number: str = "A-101", building: str = "Main Block", **kwargs) -> RoomRecord:
    return RoomRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        building=building,
        room_number=room_number,
        floor=kwargs.pop("floor", 1),
        capacity=kwargs.pop("capacity", 40),
    )


def make_faculty(name: str = "Dr. Rao", **kwargs) -> UserRecord:
    return UserRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        name=name,
        email=kwargs.pop("email", f"{name.split()[-1].lower()}@college.edu"),
        designation=kwargs.pop("designation", "Professor"),
        available=kwargs.pop("available", True),
    )


def make_exam(name: str = "Midterm", year: int = 2025, **kwargs) -> ExamRecord:
    return ExamRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        name=name,
        year=year,
        semesters=kwargs.pop("semesters", [{"semester": 3, "totalStudents": 120}]),
        subjects=kwargs.pop("subjects", []),
        faculty=kwargs.pop("faculty", []),
        rooms=kwargs.pop("rooms", []),
    )


def make_subject(name: str = "Data Structures", exam: ExamRecord | None = None, **kwargs) -> SubjectRecord:
    return SubjectRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        name=name,
        subject_code=kwargs.pop("subject_code", "CS301"),
        semester=kwargs.pop("semester", 3),
        date=kwargs.pop("date", TestConstants.NEXT_WEEK),
        start_time=kwargs.pop("start_time", "10:00"),
        end_time=kwargs.pop("end_time", "13:00"),
        exam=Ref(exam.id, exam) if exam else None,
    )


def make_allocation(exam, subject, room, faculty, resolved: bool = True, **kwargs) -> AllocationRecord:
    def ref(record):
        return Ref(record.id, record) if resolved else Ref(record.id)

    return AllocationRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        exam=ref(exam),
        subject=ref(subject),
        room=ref(room),
        faculty=ref(faculty),
        date=kwargs.pop("date", TestConstants.NEXT_WEEK),
        start_time=kwargs.pop("start_time", "10:00"),
        end_time=kwargs.pop("end_time", "13:00"),
    )


def make_room_allocation(exam, room, subjects, students=None, **kwargs) -> StudentAllocationRecord:
    return StudentAllocationRecord(
        id=kwargs.pop("id", uuid.uuid4()),
        exam=Ref(exam.id, exam),
        room=Ref(room.id, room),
        subjects=[Ref(s.id, s) for s in subjects],
        semester=kwargs.pop("semester", 3),
        date=kwargs.pop("date", TestConstants.NEXT_WEEK),
        start_time=kwargs.pop("start_time", "10:00"),
        end_time=kwargs.pop("end_time", "13:00"),
        students=students if students is not None else ["S001", "S002", "S003"],
    )


@pytest.fixture
def sample_snapshot() -> RebuildSnapshot:
    """Two exams, three allocations (one orphaned), two room allocations (one without subjects)."""
    room_a = make_room("A-101")
    room_b = make_room("B-202", building="Science Block")
    rao = make_faculty("Dr. Rao")
    mehta = make_faculty("Dr. Mehta", designation=None)

    midterm = make_exam(
        "Midterm",
        faculty=[Ref(rao.id), Ref(mehta.id)],
        rooms=[Ref(room_a.id), Ref(room_b.id)],
    )
    final = make_exam("Final", semesters=[{"semester": 5, "totalStudents": 80}])

    ds = make_subject("Data Structures", exam=midterm)
    os_ = make_subject("Operating Systems", exam=midterm, subject_code="CS302")
    physics = make_subject("Physics", exam=final, subject_code="PH101", semester=5)

    deleted_exam = make_exam("Deleted")

    return RebuildSnapshot(
        exams=[midterm, final],
        subjects=[ds, os_, physics],
        rooms=[room_a, room_b],
        faculty=[rao, mehta],
        allocations=[
            make_allocation(midterm, ds, room_a, rao, resolved=False),
            make_allocation(final, physics, room_b, mehta, resolved=False),
            # references an exam that no longer exists
            make_allocation(deleted_exam, ds, room_a, rao, resolved=False),
        ],
        room_allocations=[
            make_room_allocation(midterm, room_a, [ds, os_]),
            make_room_allocation(final, room_b, []),
        ],
    )


# ── Embedding & vector index fixtures ─────────────────────────────────────────

@pytest.fixture
def hash_embeddings() -> HashEmbeddings:
    return HashEmbeddings()


@pytest.fixture
def embedding_gateway(hash_embeddings) -> EmbeddingGateway:
    return EmbeddingGateway(client=hash_embeddings, dimension=TestConstants.EMBEDDING_DIMENSION)


@pytest.fixture
def chroma_client():
    """In-memory Chroma client; each test uses its own collection name."""
    return chromadb.EphemeralClient()


@pytest.fixture
def index_manager_factory(chroma_client):
    def _create(embedder: EmbeddingGateway, concurrency: int = 4) -> VectorIndexManager:
        return VectorIndexManager(
            embedder,
            client=chroma_client,
            collection_name=f"test_{uuid.uuid4().hex[:12]}",
            concurrency=concurrency,
        )

    return _create


@pytest.fixture
async def index_manager(index_manager_factory, embedding_gateway) -> VectorIndexManager:
    """A Ready index manager with an empty collection."""
    manager = index_manager_factory(embedding_gateway)
    await manager.initialize()
    return manager


@pytest.fixture
def mock_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.chat.return_value = "Mock answer"
    return provider


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'exams.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def seeded_ids(session_factory) -> dict[str, uuid.UUID]:
    """Seed a small exam schedule around TestConstants.TODAY."""
    ids = {name: uuid.uuid4() for name in (
        "admin", "rao", "mehta", "room_a", "room_b", "midterm", "final",
        "ds", "os", "alloc_future", "alloc_past", "alloc_today", "room_alloc",
    )}
    today, next_week, last_week = TestConstants.TODAY, TestConstants.NEXT_WEEK, TestConstants.LAST_WEEK

    async with session_factory() as session:
        admin = User(id=ids["admin"], name="Asha Admin", email="admin@college.edu", role=UserRole.ADMIN)
        rao = User(id=ids["rao"], name="Dr. Rao", email="rao@college.edu",
                   role=UserRole.FACULTY, designation="Professor")
        mehta = User(id=ids["mehta"], name="Dr. Mehta", email="mehta@college.edu",
                     role=UserRole.FACULTY, designation="Lecturer")
        room_a = Room(id=ids["room_a"], building="Main Block", room_number="A-101", floor=1, capacity=40)
        room_b = Room(id=ids["room_b"], building="Science Block", room_number="B-202", floor=2, capacity=60)
        midterm = Exam(
            id=ids["midterm"], name="Midterm", year=2025,
            semesters=[{"semester": 3, "totalStudents": 120}, {"semester": 5, "totalStudents": 90}],
            faculty=[rao, mehta], rooms=[room_a, room_b],
        )
        final = Exam(id=ids["final"], name="Final", year=2024,
                     semesters=[{"semester": 1, "totalStudents": 200}])
        ds = Subject(id=ids["ds"], exam=midterm, name="Data Structures", subject_code="CS301",
                     semester=3, date=next_week, start_time="10:00", end_time="13:00")
        os_ = Subject(id=ids["os"], exam=midterm, name="Operating Systems", subject_code="CS302",
                      semester=5, date=last_week, start_time="14:00", end_time="17:00")
        session.add_all([admin, rao, mehta, room_a, room_b, midterm, final, ds, os_])
        await session.flush()

        session.add_all([
            Allocation(id=ids["alloc_future"], exam_id=midterm.id, subject_id=ds.id, room_id=room_a.id,
                       faculty_id=rao.id, date=next_week, start_time="10:00", end_time="13:00"),
            Allocation(id=ids["alloc_past"], exam_id=midterm.id, subject_id=os_.id, room_id=room_b.id,
                       faculty_id=rao.id, date=last_week, start_time="14:00", end_time="17:00"),
            Allocation(id=ids["alloc_today"], exam_id=midterm.id, subject_id=ds.id, room_id=room_a.id,
                       faculty_id=mehta.id, date=today, start_time="10:00", end_time="13:00"),
            RoomAllocation(id=ids["room_alloc"], exam_id=midterm.id, room_id=room_a.id, semester=3,
                           date=next_week, start_time="10:00", end_time="13:00",
                           students=["S001", "S002"], subjects=[ds]),
        ])
        await session.commit()

    return ids


@pytest.fixture
def exam_data(session_factory, seeded_ids) -> ExamDataService:
    return ExamDataService(session_factory, today=lambda: TestConstants.TODAY)
