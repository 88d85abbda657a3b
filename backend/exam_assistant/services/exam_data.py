"""
Exam Data Service

Read-only lookups over the exam schema used by the chatbot:
- find_* lookups with sparse filters (a None field means "no constraint")
- aggregate counters for the admin stats view
- a broad keyword search across every entity kind
- a full snapshot of all entities for rebuilding the semantic index

Every lookup opens its own session, so the intent router can run
independent lookups concurrently with asyncio.gather.
"""

import datetime as dt
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, distinct, func, or_, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from exam_assistant.core.database import get_sessionmaker
from exam_assistant.models import (
    Allocation,
    Exam,
    Room,
    RoomAllocation,
    Subject,
    User,
    UserRole,
)
from exam_assistant.services.chatbot.errors import RetrievalError
from exam_assistant.services.chatbot.schemas import (
    AllocationRecord,
    ExamFilter,
    ExamRecord,
    FacultyAllocationFilter,
    FacultyFilter,
    KeywordMatches,
    RebuildSnapshot,
    Ref,
    RoomFilter,
    RoomRecord,
    StudentAllocationFilter,
    StudentAllocationRecord,
    SubjectFilter,
    SubjectRecord,
    SystemStats,
    TimeFilter,
    UserRecord,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT_PER_KIND = 10
MIN_KEYWORD_LENGTH = 2

# Words that never identify a record on their own
STOPWORDS = frozenset({
    "a", "about", "all", "an", "and", "any", "are", "at", "be", "by", "can", "did",
    "do", "does", "dr", "for", "from", "get", "give", "have", "how", "i", "in", "info",
    "is", "it", "list", "many", "me", "mr", "ms", "my", "of", "on", "or", "please",
    "prof", "show", "tell", "that", "the", "there", "this", "to", "was", "what",
    "when", "where", "which", "who", "will", "with", "you",
    "exam", "exams", "room", "rooms", "subject", "subjects", "faculty", "details",
})

_TOKEN = re.compile(r"[\w@.\-]+")


# ── ORM → record conversion ──────────────────────────────────────────────────

def _loaded(obj: Any, relation: str) -> bool:
    return relation not in sa_inspect(obj).unloaded


def user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        designation=user.designation,
        available=bool(user.available),
    )


def room_record(room: Room) -> RoomRecord:
    return RoomRecord(
        id=room.id,
        building=room.building,
        room_number=room.room_number,
        floor=room.floor,
        capacity=room.capacity,
    )


def subject_record(subject: Subject, with_exam: bool = True) -> SubjectRecord:
    exam_ref = Ref(subject.exam_id)
    if with_exam and _loaded(subject, "exam") and subject.exam is not None:
        exam_ref = Ref(subject.exam_id, exam_record(subject.exam, with_relations=False))
    return SubjectRecord(
        id=subject.id,
        name=subject.name,
        subject_code=subject.subject_code,
        semester=subject.semester,
        date=subject.date,
        start_time=subject.start_time,
        end_time=subject.end_time,
        exam=exam_ref,
    )


def exam_record(exam: Exam, with_relations: bool = True) -> ExamRecord:
    record = ExamRecord(
        id=exam.id,
        name=exam.name,
        year=exam.year,
        semesters=list(exam.semesters or []),
    )
    if not with_relations:
        return record
    if _loaded(exam, "subjects"):
        record.subjects = [Ref(s.id, subject_record(s, with_exam=False)) for s in exam.subjects]
    if _loaded(exam, "faculty"):
        record.faculty = [Ref(u.id, user_record(u)) for u in exam.faculty]
    if _loaded(exam, "rooms"):
        record.rooms = [Ref(r.id, room_record(r)) for r in exam.rooms]
    return record


def _relation_ref(obj: Any, relation: str, fk_id: Any, convert: Callable) -> Ref:
    if _loaded(obj, relation):
        related = getattr(obj, relation)
        if related is not None:
            return Ref(fk_id, convert(related))
    return Ref(fk_id)


def allocation_record(allocation: Allocation) -> AllocationRecord:
    return AllocationRecord(
        id=allocation.id,
        exam=_relation_ref(
            allocation, "exam", allocation.exam_id,
            lambda e: exam_record(e, with_relations=False),
        ),
        subject=_relation_ref(
            allocation, "subject", allocation.subject_id,
            lambda s: subject_record(s, with_exam=False),
        ),
        room=_relation_ref(allocation, "room", allocation.room_id, room_record),
        faculty=_relation_ref(allocation, "faculty", allocation.faculty_id, user_record),
        date=allocation.date,
        start_time=allocation.start_time,
        end_time=allocation.end_time,
    )


def student_allocation_record(room_allocation: RoomAllocation) -> StudentAllocationRecord:
    subjects: list[Ref[SubjectRecord]] = []
    if _loaded(room_allocation, "subjects"):
        subjects = [
            Ref(s.id, subject_record(s, with_exam=False)) for s in room_allocation.subjects
        ]
    return StudentAllocationRecord(
        id=room_allocation.id,
        exam=_relation_ref(
            room_allocation, "exam", room_allocation.exam_id,
            lambda e: exam_record(e, with_relations=False),
        ),
        room=_relation_ref(room_allocation, "room", room_allocation.room_id, room_record),
        subjects=subjects,
        semester=room_allocation.semester,
        date=room_allocation.date,
        start_time=room_allocation.start_time,
        end_time=room_allocation.end_time,
        students=list(room_allocation.students or []),
    )


def _contains(column: Any, text: str) -> Any:
    return column.ilike(f"%{text}%")


def _same_text(column: Any, text: str) -> Any:
    return func.lower(column) == text.lower()


def keywords(text: str | None) -> list[str]:
    """Lowercased search keywords of a free-text query, stopwords removed."""
    words = []
    for token in _TOKEN.findall((text or "").lower()):
        token = token.strip(".-")
        if len(token) < MIN_KEYWORD_LENGTH or token in STOPWORDS:
            continue
        if token not in words:
            words.append(token)
    return words


def _contains_any(columns: list[Any], words: list[str]) -> Any:
    return or_(*(_contains(column, word) for column in columns for word in words))


class ExamDataService:
    """Async lookups against the exam database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self._session_factory = session_factory or get_sessionmaker()
        self._today = today

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("%s failed: %s", operation, e)
            raise RetrievalError(f"{operation} failed: {e}") from e

    def _apply_time(self, stmt: Select, date_column: Any, time: TimeFilter) -> Select:
        if not time.active:
            return stmt
        today = self._today()
        clauses = []
        if time.past:
            clauses.append(date_column < today)
        if time.present:
            clauses.append(date_column == today)
        if time.future:
            clauses.append(date_column > today)
        return stmt.where(or_(*clauses))

    # ── Entity lookups ───────────────────────────────────────────────────────

    async def find_exams(self, filters: ExamFilter) -> list[ExamRecord]:
        stmt = select(Exam).options(
            selectinload(Exam.subjects),
            selectinload(Exam.faculty),
            selectinload(Exam.rooms),
        )
        if filters.name:
            stmt = stmt.where(_contains(Exam.name, filters.name))
        if filters.year is not None:
            stmt = stmt.where(Exam.year == filters.year)
        stmt = stmt.order_by(Exam.year.desc(), Exam.name)

        async with self._session("find_exams") as session:
            exams = (await session.execute(stmt)).scalars().all()
            records = [exam_record(e) for e in exams]

        # Semesters live in a JSON column; filter them here to stay portable
        if filters.semester is not None:
            records = [
                r for r in records
                if any(s.get("semester") == filters.semester for s in r.semesters)
            ]
        return records

    async def find_subjects(self, filters: SubjectFilter) -> list[SubjectRecord]:
        stmt = select(Subject).options(selectinload(Subject.exam))
        if filters.name:
            stmt = stmt.where(_contains(Subject.name, filters.name))
        if filters.subject_code:
            stmt = stmt.where(_same_text(Subject.subject_code, filters.subject_code))
        if filters.semester is not None:
            stmt = stmt.where(Subject.semester == filters.semester)
        if filters.date is not None:
            stmt = stmt.where(Subject.date == filters.date)
        stmt = stmt.order_by(Subject.date, Subject.start_time, Subject.name)

        async with self._session("find_subjects") as session:
            subjects = (await session.execute(stmt)).scalars().all()
            return [subject_record(s) for s in subjects]

    async def find_rooms(self, filters: RoomFilter) -> list[RoomRecord]:
        stmt = select(Room)
        if filters.building:
            stmt = stmt.where(_contains(Room.building, filters.building))
        if filters.room_number:
            stmt = stmt.where(_same_text(Room.room_number, filters.room_number))
        if filters.floor is not None:
            stmt = stmt.where(Room.floor == filters.floor)
        stmt = stmt.order_by(Room.building, Room.room_number)

        async with self._session("find_rooms") as session:
            rooms = (await session.execute(stmt)).scalars().all()
            return [room_record(r) for r in rooms]

    async def find_faculty(self, filters: FacultyFilter) -> list[UserRecord]:
        stmt = select(User).where(User.role == UserRole.FACULTY)
        if filters.name:
            stmt = stmt.where(_contains(User.name, filters.name))
        if filters.email:
            stmt = stmt.where(_contains(User.email, filters.email))
        if filters.designation:
            stmt = stmt.where(_contains(User.designation, filters.designation))
        stmt = stmt.order_by(User.name)

        async with self._session("find_faculty") as session:
            users = (await session.execute(stmt)).scalars().all()
            return [user_record(u) for u in users]

    async def find_faculty_allocations(
        self, filters: FacultyAllocationFilter
    ) -> list[AllocationRecord]:
        stmt = select(Allocation).options(
            selectinload(Allocation.exam),
            selectinload(Allocation.subject),
            selectinload(Allocation.room),
            selectinload(Allocation.faculty),
        )
        if filters.faculty_id is not None:
            stmt = stmt.where(Allocation.faculty_id == filters.faculty_id)
        if filters.faculty_name:
            stmt = stmt.join(User, Allocation.faculty_id == User.id).where(
                _contains(User.name, filters.faculty_name)
            )
        if filters.room_id is not None:
            stmt = stmt.where(Allocation.room_id == filters.room_id)
        if filters.room_number:
            stmt = stmt.join(Room, Allocation.room_id == Room.id).where(
                _same_text(Room.room_number, filters.room_number)
            )
        if filters.date is not None:
            stmt = stmt.where(Allocation.date == filters.date)
        stmt = self._apply_time(stmt, Allocation.date, filters.time)
        stmt = stmt.order_by(Allocation.date, Allocation.start_time)

        async with self._session("find_faculty_allocations") as session:
            allocations = (await session.execute(stmt)).scalars().all()
            return [allocation_record(a) for a in allocations]

    async def find_student_allocations(
        self, filters: StudentAllocationFilter
    ) -> list[StudentAllocationRecord]:
        stmt = select(RoomAllocation).options(
            selectinload(RoomAllocation.exam),
            selectinload(RoomAllocation.room),
            selectinload(RoomAllocation.subjects),
        )
        needs_room_join = bool(filters.room_number or filters.room_numbers)
        if needs_room_join:
            stmt = stmt.join(Room, RoomAllocation.room_id == Room.id)
        if filters.room_number:
            stmt = stmt.where(_same_text(Room.room_number, filters.room_number))
        if filters.room_ids or filters.room_numbers:
            clauses = []
            if filters.room_ids:
                clauses.append(RoomAllocation.room_id.in_(filters.room_ids))
            if filters.room_numbers:
                clauses.append(Room.room_number.in_(filters.room_numbers))
            stmt = stmt.where(or_(*clauses))
        if filters.semester is not None:
            stmt = stmt.where(RoomAllocation.semester == filters.semester)
        if filters.date is not None:
            stmt = stmt.where(RoomAllocation.date == filters.date)
        stmt = self._apply_time(stmt, RoomAllocation.date, filters.time)
        stmt = stmt.order_by(RoomAllocation.date, RoomAllocation.start_time)

        async with self._session("find_student_allocations") as session:
            rows = (await session.execute(stmt)).scalars().all()
            records = [student_allocation_record(r) for r in rows]

        # Student lists live in a JSON column
        if filters.student:
            needle = filters.student.lower()
            records = [
                r for r in records if any(needle in s.lower() for s in r.students)
            ]
        return records

    # ── Aggregates & search ──────────────────────────────────────────────────

    async def get_system_stats(self) -> SystemStats:
        today = self._today()
        async with self._session("get_system_stats") as session:

            async def count(stmt: Select) -> int:
                return int((await session.execute(stmt)).scalar_one())

            return SystemStats(
                total_exams=await count(select(func.count(Exam.id))),
                total_rooms=await count(select(func.count(Room.id))),
                total_faculty=await count(
                    select(func.count(User.id)).where(User.role == UserRole.FACULTY)
                ),
                total_subjects=await count(select(func.count(Subject.id))),
                current_allocations=await count(
                    select(func.count(Allocation.id)).where(Allocation.date == today)
                ),
                upcoming_exams=await count(
                    select(func.count(distinct(Subject.exam_id))).where(Subject.date >= today)
                ),
            )

    async def search_all(self, text: str) -> KeywordMatches:
        """Keyword search by name/code/number/email across all entity kinds.

        A record matches when any keyword of the text appears in one of its
        searched columns, so full sentences work as well as bare codes.
        """
        words = keywords(text)
        if not words:
            return KeywordMatches()

        async with self._session("search_all") as session:
            exams = (await session.execute(
                select(Exam).where(_contains_any([Exam.name], words))
                .order_by(Exam.year.desc()).limit(SEARCH_LIMIT_PER_KIND)
            )).scalars().all()
            subjects = (await session.execute(
                select(Subject)
                .where(_contains_any([Subject.name, Subject.subject_code], words))
                .order_by(Subject.name).limit(SEARCH_LIMIT_PER_KIND)
            )).scalars().all()
            rooms = (await session.execute(
                select(Room)
                .where(_contains_any([Room.room_number, Room.building], words))
                .order_by(Room.building, Room.room_number).limit(SEARCH_LIMIT_PER_KIND)
            )).scalars().all()
            faculty = (await session.execute(
                select(User)
                .where(User.role == UserRole.FACULTY)
                .where(_contains_any([User.name, User.email], words))
                .order_by(User.name).limit(SEARCH_LIMIT_PER_KIND)
            )).scalars().all()

            return KeywordMatches(
                exams=[exam_record(e, with_relations=False) for e in exams],
                subjects=[subject_record(s, with_exam=False) for s in subjects],
                rooms=[room_record(r) for r in rooms],
                faculty=[user_record(u) for u in faculty],
            )

    async def load_snapshot(self) -> RebuildSnapshot:
        """Load every entity in one pass, for a semantic index rebuild."""
        async with self._session("load_snapshot") as session:
            exams = (await session.execute(
                select(Exam).options(selectinload(Exam.faculty), selectinload(Exam.rooms))
            )).scalars().all()
            subjects = (await session.execute(select(Subject))).scalars().all()
            rooms = (await session.execute(select(Room))).scalars().all()
            faculty = (await session.execute(
                select(User).where(User.role == UserRole.FACULTY)
            )).scalars().all()
            allocations = (await session.execute(select(Allocation))).scalars().all()
            room_allocations = (await session.execute(
                select(RoomAllocation).options(selectinload(RoomAllocation.subjects))
            )).scalars().all()

            return RebuildSnapshot(
                exams=[exam_record(e) for e in exams],
                subjects=[subject_record(s, with_exam=False) for s in subjects],
                rooms=[room_record(r) for r in rooms],
                faculty=[user_record(u) for u in faculty],
                allocations=[allocation_record(a) for a in allocations],
                room_allocations=[student_allocation_record(r) for r in room_allocations],
            )
