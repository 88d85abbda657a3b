"""
Context Formatter

Turns retrieved data into the text block pasted into the system prompt.

Two renderers:
1. format_context() — a ContextBundle from the intent router. Datasets are
   rendered in Dataset enumeration order, one upper-case section each;
   empty datasets never produce a section.
2. format_semantic_context() — ranked vector search results, grouped into
   EXAMS / FACULTY ALLOCATIONS / ROOM ALLOCATIONS using the stored summaries.

Sampling caps keep the block bounded however large the underlying data is.
"""

import re
from collections.abc import Callable

from exam_assistant.services.chatbot.schemas import (
    AllocationRecord,
    ContextBundle,
    Dataset,
    ExamRecord,
    FacultyStats,
    KeywordMatches,
    RoomRecord,
    StudentAllocationRecord,
    SubjectRecord,
    SystemStats,
    UserRecord,
    is_empty,
)
from exam_assistant.services.chatbot.summarizer import format_date
from exam_assistant.services.chatbot.vector_index import (
    ALLOCATION,
    EXAM,
    ROOM_ALLOCATION,
    RetrievalResult,
)

SAMPLE_SUBJECTS = 3
SAMPLE_STUDENTS = 5
SAMPLE_SEARCH_RESULTS = 3

NO_RELEVANT_DATA = "No relevant exam data available for this query."
SEMANTIC_HEADER = "Exam System Information:"

SEMANTIC_SECTIONS = (
    (EXAM, "EXAMS"),
    (ALLOCATION, "FACULTY ALLOCATIONS"),
    (ROOM_ALLOCATION, "ROOM ALLOCATIONS"),
)


def section_title(dataset: Dataset) -> str:
    """'facultyRoomStudents' -> 'FACULTY ROOM STUDENTS'."""
    return re.sub(r"(?<!^)(?=[A-Z])", " ", dataset.value).upper()


def _sample(items: list, limit: int) -> tuple[list, str]:
    """First `limit` items, plus a suffix naming how many were left out."""
    if len(items) <= limit:
        return items, ""
    return items[:limit], f", ... (+{len(items) - limit} more)"


def _room_label(room: RoomRecord) -> str:
    return f"{room.building or 'N/A'} - {room.room_number or 'N/A'}"


def _subject_label(subject: SubjectRecord) -> str:
    if subject.subject_code:
        return f"{subject.name} ({subject.subject_code})"
    return subject.name


def _time_span(start: str | None, end: str | None) -> str:
    return f"{start or 'N/A'} - {end or 'N/A'}"


# ── Per-dataset renderers ─────────────────────────────────────────────────────

def _render_exams(exams: list[ExamRecord]) -> list[str]:
    lines = []
    for i, exam in enumerate(exams, 1):
        lines.append(f"Exam {i}: {exam.name} ({exam.year or 'N/A'})")
        semesters = [str(s.get("semester")) for s in exam.semesters if isinstance(s, dict)]
        if semesters:
            lines.append(f"  Semesters: {', '.join(semesters)}")
        if exam.subjects:
            names, more = _sample(
                [ref.label(lambda s: s.name) for ref in exam.subjects], SAMPLE_SUBJECTS
            )
            lines.append(f"  Subjects: {len(exam.subjects)} subjects")
            lines.append(f"  Sample Subjects: {', '.join(names)}{more}")
        lines.append("")
    return lines


def _render_subjects(subjects: list[SubjectRecord]) -> list[str]:
    lines = []
    for i, subject in enumerate(subjects, 1):
        lines.append(f"Subject {i}: {subject.name} ({subject.subject_code or 'N/A'})")
        lines.append(f"  Semester: {subject.semester if subject.semester is not None else 'N/A'}")
        if subject.date:
            lines.append(f"  Date: {format_date(subject.date)}")
            lines.append(f"  Time: {_time_span(subject.start_time, subject.end_time)}")
        if subject.exam is not None:
            lines.append(f"  Exam: {subject.exam.label(lambda e: e.name)}")
        lines.append("")
    return lines


def _render_rooms(rooms: list[RoomRecord]) -> list[str]:
    lines = []
    for i, room in enumerate(rooms, 1):
        lines.append(f"Room {i}: {_room_label(room)}")
        floor = room.floor if room.floor is not None else "N/A"
        capacity = room.capacity if room.capacity is not None else "N/A"
        lines.append(f"  Floor: {floor}, Capacity: {capacity}")
        lines.append("")
    return lines


def _render_allocations(allocations: list[AllocationRecord]) -> list[str]:
    lines = []
    for i, alloc in enumerate(allocations, 1):
        lines.append(f"Allocation {i}:")
        lines.append(f"  Faculty: {alloc.faculty.label(lambda f: f.name)}")
        lines.append(f"  Exam: {alloc.exam.label(lambda e: e.name)}")
        lines.append(f"  Subject: {alloc.subject.label(_subject_label)}")
        lines.append(f"  Room: {alloc.room.label(_room_label)}")
        if alloc.date:
            lines.append(f"  Date: {format_date(alloc.date)}")
            lines.append(f"  Time: {_time_span(alloc.start_time, alloc.end_time)}")
        lines.append("")
    return lines


def _render_student_allocations(allocations: list[StudentAllocationRecord]) -> list[str]:
    lines = []
    for i, alloc in enumerate(allocations, 1):
        lines.append(f"Student Allocation {i}:")
        lines.append(f"  Room: {alloc.room.label(lambda r: r.room_number or 'Unknown')}")
        lines.append(f"  Exam: {alloc.exam.label(lambda e: e.name)}")
        if alloc.subjects:
            names = [ref.label(lambda s: s.name) for ref in alloc.subjects]
            lines.append(f"  Subjects: {', '.join(names)}")
        if alloc.date:
            lines.append(f"  Date: {format_date(alloc.date)}")
        lines.append(f"  Students Count: {len(alloc.students)}")
        if alloc.students:
            sample, more = _sample(alloc.students, SAMPLE_STUDENTS)
            lines.append(f"  Sample Students: {', '.join(sample)}{more}")
        lines.append("")
    return lines


def _render_faculty(faculty: list[UserRecord]) -> list[str]:
    lines = []
    for i, member in enumerate(faculty, 1):
        lines.append(f"Faculty {i}: {member.name}")
        lines.append(f"  Email: {member.email or 'Not provided'}")
        lines.append(f"  Designation: {member.designation or 'Not specified'}")
        lines.append(f"  Available: {'Yes' if member.available else 'No'}")
        lines.append("")
    return lines


def _render_stats(stats: SystemStats) -> list[str]:
    return [
        f"  Total Exams: {stats.total_exams}",
        f"  Total Rooms: {stats.total_rooms}",
        f"  Total Faculty: {stats.total_faculty}",
        f"  Total Subjects: {stats.total_subjects}",
        f"  Current Allocations: {stats.current_allocations}",
        f"  Upcoming Exams: {stats.upcoming_exams}",
        "",
    ]


def _render_faculty_stats(stats: FacultyStats) -> list[str]:
    return [
        f"  Total Allocations: {stats.total_allocations}",
        f"  Upcoming Allocations: {stats.upcoming_allocations}",
        f"  Past Allocations: {stats.past_allocations}",
        "",
    ]


def _render_search_results(matches: KeywordMatches) -> list[str]:
    kinds: list[tuple[str, list, Callable]] = [
        ("Exams", matches.exams, lambda e: f"{e.name} ({e.year or 'N/A'})"),
        ("Subjects", matches.subjects, lambda s: f"{s.name} ({s.subject_code or 'N/A'})"),
        ("Rooms", matches.rooms, _room_label),
        ("Faculty", matches.faculty, lambda f: f"{f.name} ({f.email or 'N/A'})"),
    ]
    lines = []
    for label, items, render in kinds:
        if not items:
            continue
        lines.append(f"  {label} found: {len(items)}")
        lines.extend(f"    - {render(item)}" for item in items[:SAMPLE_SEARCH_RESULTS])
    lines.append("")
    return lines


RENDERERS: dict[Dataset, Callable[[object], list[str]]] = {
    Dataset.EXAMS: _render_exams,
    Dataset.SUBJECTS: _render_subjects,
    Dataset.ROOMS: _render_rooms,
    Dataset.ALLOCATIONS: _render_allocations,
    Dataset.FACULTY_EXAMS: _render_allocations,
    Dataset.FACULTY_ROOMS: _render_allocations,
    Dataset.FACULTY_ROOM_ALLOCATIONS: _render_allocations,
    Dataset.FACULTY_DATA: _render_allocations,
    Dataset.STUDENT_ALLOCATIONS: _render_student_allocations,
    Dataset.ROOM_ALLOCATIONS: _render_student_allocations,
    Dataset.FACULTY_ROOM_STUDENTS: _render_student_allocations,
    Dataset.FACULTY: _render_faculty,
    Dataset.STATS: _render_stats,
    Dataset.FACULTY_STATS: _render_faculty_stats,
    Dataset.SEARCH_RESULTS: _render_search_results,
}


# ── Structured renderer ───────────────────────────────────────────────────────

def format_context(bundle: ContextBundle) -> str:
    """Render a ContextBundle. Always returns at least the header lines."""
    lines = [
        "CONTEXT INFORMATION FOR QUERY:",
        f"Intent: {bundle.intent.value}",
        f"User Role: {bundle.role.value}",
    ]
    if bundle.acting_user_name:
        lines.append(f"User Name: {bundle.acting_user_name}")
    lines.append("")

    for dataset in Dataset:
        value = bundle.data.get(dataset)
        if is_empty(value):
            continue
        lines.append(f"{section_title(dataset)}:")
        lines.extend(RENDERERS[dataset](value))

    return "\n".join(lines)


# ── Semantic renderer ─────────────────────────────────────────────────────────

def select_relevant(results: list[RetrievalResult], min_relevance: float) -> list[RetrievalResult]:
    """Keep results at or above the relevance threshold, best first."""
    kept = [r for r in results if r.similarity >= min_relevance]
    return sorted(kept, key=lambda r: r.similarity, reverse=True)


def format_semantic_context(results: list[RetrievalResult]) -> str:
    """
    Group relevant results by document type, in descending similarity.

    Returns NO_RELEVANT_DATA when there is nothing to render; callers treat
    that as the final answer rather than asking the model.
    """
    if not results:
        return NO_RELEVANT_DATA

    ranked = sorted(results, key=lambda r: r.similarity, reverse=True)
    blocks = [SEMANTIC_HEADER, ""]
    for doc_type, title in SEMANTIC_SECTIONS:
        contents = [r.document.content for r in ranked if r.document.type == doc_type]
        if contents:
            blocks.append(f"{title}:\n" + "\n\n".join(contents) + "\n")
    return "\n".join(blocks).rstrip() + "\n"
