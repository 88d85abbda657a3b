"""
Chatbot Data Model

Types shared across the retrieval pipeline:
- the incoming query and the requesting user's role
- the intent classifier's (untrusted) output
- the records returned by the exam data service
- the ContextBundle handed from the intent router to the formatter

Records are plain dataclasses; only classifier output goes through pydantic
validation, because it comes from an LLM and may be missing any field.
"""

import datetime as dt
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator


class Role(str, Enum):
    ADMIN = "Admin"
    FACULTY = "Faculty"
    ANONYMOUS = "Anonymous"


class Intent(str, Enum):
    EXAM_INFO = "exam_info"
    FACULTY_ALLOCATION = "faculty_allocation"
    ROOM_INFO = "room_info"
    STUDENT_ALLOCATION = "student_allocation"
    FACULTY_INFO = "faculty_info"
    SYSTEM_STATS = "system_stats"
    GENERAL = "general"


class TimePeriod(str, Enum):
    PAST = "past"
    PRESENT = "present"
    FUTURE = "future"
    NONE = "none"


class Dataset(str, Enum):
    """Context dataset names, in the order the formatter renders them."""

    EXAMS = "exams"
    SUBJECTS = "subjects"
    ROOMS = "rooms"
    ALLOCATIONS = "allocations"
    FACULTY_EXAMS = "facultyExams"
    FACULTY_ROOMS = "facultyRooms"
    FACULTY_ROOM_ALLOCATIONS = "facultyRoomAllocations"
    STUDENT_ALLOCATIONS = "studentAllocations"
    ROOM_ALLOCATIONS = "roomAllocations"
    FACULTY_ROOM_STUDENTS = "facultyRoomStudents"
    FACULTY = "faculty"
    STATS = "stats"
    FACULTY_STATS = "facultyStats"
    SEARCH_RESULTS = "searchResults"
    FACULTY_DATA = "facultyData"


# ── Foreign keys ─────────────────────────────────────────────────────────────

T = TypeVar("T")


@dataclass(frozen=True)
class Ref(Generic[T]):
    """A foreign key: either the raw id or the resolved record."""

    id: uuid.UUID
    value: T | None = None

    @property
    def resolved(self) -> bool:
        return self.value is not None

    def label(self, render: Callable[[T], str]) -> str:
        """Human label when resolved, the raw id otherwise."""
        if self.value is None:
            return str(self.id)
        return render(self.value)


# ── Records ──────────────────────────────────────────────────────────────────

@dataclass
class UserRecord:
    id: uuid.UUID
    name: str
    email: str | None = None
    designation: str | None = None
    available: bool = False


@dataclass
class RoomRecord:
    id: uuid.UUID
    building: str | None = None
    room_number: str | None = None
    floor: int | None = None
    capacity: int | None = None


@dataclass
class SubjectRecord:
    id: uuid.UUID
    name: str
    subject_code: str | None = None
    semester: int | None = None
    date: dt.date | None = None
    start_time: str | None = None
    end_time: str | None = None
    exam: "Ref[ExamRecord] | None" = None


@dataclass
class ExamRecord:
    id: uuid.UUID
    name: str
    year: int | None = None
    semesters: list[dict] = field(default_factory=list)
    subjects: list[Ref[SubjectRecord]] = field(default_factory=list)
    faculty: list[Ref[UserRecord]] = field(default_factory=list)
    rooms: list[Ref[RoomRecord]] = field(default_factory=list)


@dataclass
class AllocationRecord:
    """A faculty invigilation duty."""

    id: uuid.UUID
    exam: Ref[ExamRecord]
    subject: Ref[SubjectRecord]
    room: Ref[RoomRecord]
    faculty: Ref[UserRecord]
    date: dt.date | None = None
    start_time: str | None = None
    end_time: str | None = None


@dataclass
class StudentAllocationRecord:
    """Student seating in one room for one exam session."""

    id: uuid.UUID
    exam: Ref[ExamRecord]
    room: Ref[RoomRecord]
    subjects: list[Ref[SubjectRecord]] = field(default_factory=list)
    semester: int | None = None
    date: dt.date | None = None
    start_time: str | None = None
    end_time: str | None = None
    students: list[str] = field(default_factory=list)


@dataclass
class SystemStats:
    total_exams: int = 0
    total_rooms: int = 0
    total_faculty: int = 0
    total_subjects: int = 0
    current_allocations: int = 0
    upcoming_exams: int = 0


@dataclass
class FacultyStats:
    total_allocations: int = 0
    upcoming_allocations: int = 0
    past_allocations: int = 0


@dataclass
class KeywordMatches:
    """Result of a broad keyword search across every entity kind."""

    exams: list[ExamRecord] = field(default_factory=list)
    subjects: list[SubjectRecord] = field(default_factory=list)
    rooms: list[RoomRecord] = field(default_factory=list)
    faculty: list[UserRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.exams) + len(self.subjects) + len(self.rooms) + len(self.faculty)


@dataclass
class RebuildSnapshot:
    """Every entity the semantic index is derived from."""

    exams: list[ExamRecord] = field(default_factory=list)
    subjects: list[SubjectRecord] = field(default_factory=list)
    rooms: list[RoomRecord] = field(default_factory=list)
    faculty: list[UserRecord] = field(default_factory=list)
    allocations: list[AllocationRecord] = field(default_factory=list)
    room_allocations: list[StudentAllocationRecord] = field(default_factory=list)


# ── Lookup filters ───────────────────────────────────────────────────────────
# Sparse: a field left as None places no constraint on the lookup.

@dataclass(frozen=True)
class TimeFilter:
    past: bool = False
    present: bool = False
    future: bool = False

    @classmethod
    def from_period(cls, period: TimePeriod) -> "TimeFilter":
        return cls(
            past=period == TimePeriod.PAST,
            present=period == TimePeriod.PRESENT,
            future=period == TimePeriod.FUTURE,
        )

    @property
    def active(self) -> bool:
        return self.past or self.present or self.future


@dataclass(frozen=True)
class ExamFilter:
    name: str | None = None
    year: int | None = None
    semester: int | None = None


@dataclass(frozen=True)
class SubjectFilter:
    name: str | None = None
    subject_code: str | None = None
    semester: int | None = None
    date: dt.date | None = None


@dataclass(frozen=True)
class RoomFilter:
    building: str | None = None
    room_number: str | None = None
    floor: int | None = None


@dataclass(frozen=True)
class FacultyFilter:
    name: str | None = None
    email: str | None = None
    designation: str | None = None


@dataclass(frozen=True)
class FacultyAllocationFilter:
    faculty_id: uuid.UUID | None = None
    faculty_name: str | None = None
    room_id: uuid.UUID | None = None
    room_number: str | None = None
    date: dt.date | None = None
    time: TimeFilter = TimeFilter()


@dataclass(frozen=True)
class StudentAllocationFilter:
    room_number: str | None = None
    room_ids: tuple[uuid.UUID, ...] = ()
    room_numbers: tuple[str, ...] = ()
    semester: int | None = None
    student: str | None = None
    date: dt.date | None = None
    time: TimeFilter = TimeFilter()


# ── Classifier output ────────────────────────────────────────────────────────

class IntentClassification(BaseModel):
    """
    Output of the intent classifier.

    Every field is optional. Unknown intents fall back to ``general`` and
    unknown time periods to ``none``; entity slots returned at the top level
    (a flat JSON object) are folded into ``entities``.
    """

    intent: Intent = Intent.GENERAL
    time_period: TimePeriod = TimePeriod.NONE
    entities: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_flat_entities(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        entities = data.get("entities")
        entities = dict(entities) if isinstance(entities, dict) else {}
        for key, value in data.items():
            if key not in ("intent", "time_period", "entities"):
                entities.setdefault(key, value)
        return {
            "intent": data.get("intent"),
            "time_period": data.get("time_period"),
            "entities": entities,
        }

    @field_validator("intent", mode="before")
    @classmethod
    def _coerce_intent(cls, value: Any) -> Intent:
        if isinstance(value, Intent):
            return value
        try:
            return Intent(str(value).strip().lower())
        except ValueError:
            return Intent.GENERAL

    @field_validator("time_period", mode="before")
    @classmethod
    def _coerce_time_period(cls, value: Any) -> TimePeriod:
        if isinstance(value, TimePeriod):
            return value
        try:
            return TimePeriod(str(value).strip().lower())
        except ValueError:
            return TimePeriod.NONE

    def entity(self, name: str) -> str | None:
        """Slot value by snake_case name; camelCase spellings are accepted too."""
        value = self.entities.get(name)
        if value is None:
            head, *rest = name.split("_")
            value = self.entities.get(head + "".join(part.title() for part in rest))
        if value is None or isinstance(value, (dict, list)):
            return None
        text = str(value).strip()
        return text or None

    def entity_int(self, name: str) -> int | None:
        text = self.entity(name)
        if text is None:
            return None
        try:
            return int(text)
        except ValueError:
            return None

    def entity_date(self, name: str = "date") -> dt.date | None:
        text = self.entity(name)
        if text is None:
            return None
        try:
            return dt.date.fromisoformat(text[:10])
        except ValueError:
            return None

    def entity_uuid(self, name: str) -> uuid.UUID | None:
        text = self.entity(name)
        if text is None:
            return None
        try:
            return uuid.UUID(text)
        except ValueError:
            return None


# ── Query & conversation ─────────────────────────────────────────────────────

class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class ChatQuery:
    text: str
    role: Role = Role.ANONYMOUS
    user: UserRecord | None = None

    @property
    def acting_user_id(self) -> uuid.UUID | None:
        return self.user.id if self.user else None

    @property
    def acting_user_name(self) -> str | None:
        return self.user.name if self.user else None

    @property
    def is_faculty(self) -> bool:
        return self.role == Role.FACULTY and self.user is not None


# ── Context bundle ───────────────────────────────────────────────────────────

def is_empty(value: Any) -> bool:
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


@dataclass
class ContextBundle:
    intent: Intent
    role: Role
    acting_user_name: str | None = None
    data: dict[Dataset, Any] = field(default_factory=dict)

    def put(self, dataset: Dataset, value: Any) -> None:
        """Store a dataset; empty results are dropped, never stored."""
        if is_empty(value):
            self.data.pop(dataset, None)
            return
        self.data[dataset] = value
