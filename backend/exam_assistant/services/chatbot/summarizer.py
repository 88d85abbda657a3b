"""
Entity Summarizer

Renders an exam, a faculty allocation or a room allocation, together with
its already-resolved joined records, into one deterministic paragraph.
These paragraphs are what the semantic index embeds and what the admin
chatbot later pastes into its prompt.

Rules:
- lists longer than MAX_LISTED_ITEMS keep the first items plus "..."
- missing optional fields render as "N/A" / "Not specified", never vanish
- pure functions: no I/O, never raise on missing data
"""

import datetime as dt
from collections.abc import Iterable

from exam_assistant.services.chatbot.schemas import (
    AllocationRecord,
    ExamRecord,
    RoomRecord,
    StudentAllocationRecord,
    SubjectRecord,
    UserRecord,
)

MAX_LISTED_ITEMS = 3
ELLIPSIS = "..."
NOT_AVAILABLE = "N/A"
NOT_SPECIFIED = "Not specified"


def format_date(value: dt.date | None) -> str:
    """Render as 'January 5, 2025'."""
    if value is None:
        return NOT_AVAILABLE
    return f"{value:%B} {value.day}, {value.year}"


def format_time(value: str | None) -> str:
    """The stored time, unchanged; 'N/A' when missing."""
    return _or(value)


def _or(value: object, placeholder: str = NOT_AVAILABLE) -> str:
    if value is None:
        return placeholder
    text = str(value).strip()
    return text or placeholder


def _bullets(items: Iterable[str], empty: str = NOT_SPECIFIED) -> str:
    items = list(items)
    if not items:
        return f"  - {empty}"
    lines = [f"  - {item}" for item in items[:MAX_LISTED_ITEMS]]
    if len(items) > MAX_LISTED_ITEMS:
        lines.append(f"  - {ELLIPSIS}")
    return "\n".join(lines)


def _semesters(exam: ExamRecord) -> str:
    parts = []
    for entry in exam.semesters:
        if not isinstance(entry, dict):
            continue
        students = entry.get("totalStudents")
        parts.append(
            f"Sem {_or(entry.get('semester'))} ({_or(students, '0')} students)"
        )
    return ", ".join(parts) if parts else NOT_SPECIFIED


def build_exam_text(
    exam: ExamRecord,
    subjects: list[SubjectRecord] | None = None,
    faculty: list[UserRecord] | None = None,
    rooms: list[RoomRecord] | None = None,
) -> str:
    subject_lines = _bullets(
        f"{_or(s.name)} ({_or(s.subject_code)}) on {format_date(s.date)} "
        f"{format_time(s.start_time)}-{format_time(s.end_time)}"
        for s in subjects or []
    )
    faculty_lines = _bullets(
        f"{_or(f.name)} ({_or(f.designation, NOT_SPECIFIED)})" for f in faculty or []
    )
    room_lines = _bullets(
        f"{_or(r.building)} Room {_or(r.room_number)} (Capacity: {_or(r.capacity)})"
        for r in rooms or []
    )
    return (
        f"Exam: {_or(exam.name)} (Year: {_or(exam.year)})\n"
        f"- Semesters: {_semesters(exam)}\n"
        f"- Subjects:\n{subject_lines}\n"
        f"- Faculties:\n{faculty_lines}\n"
        f"- Rooms:\n{room_lines}"
    )


def build_allocation_text(
    allocation: AllocationRecord,
    exam: ExamRecord,
    subject: SubjectRecord,
    room: RoomRecord,
    faculty: UserRecord,
) -> str:
    return (
        f"Allocation for {_or(exam.name)}:\n"
        f"- Faculty: {_or(faculty.name)} ({_or(faculty.designation, NOT_SPECIFIED)})\n"
        f"- Subject: {_or(subject.name)} (Sem {_or(subject.semester)})\n"
        f"- Room: {_or(room.building)} Room {_or(room.room_number)}\n"
        f"- Date: {format_date(allocation.date)}\n"
        f"- Time: {format_time(allocation.start_time)} to {format_time(allocation.end_time)}"
    )


def build_room_allocation_text(
    room_allocation: StudentAllocationRecord,
    exam: ExamRecord,
    room: RoomRecord,
    subjects: list[SubjectRecord] | None = None,
) -> str:
    subjects = subjects or []
    names = [f"{_or(s.name)} (Sem {_or(s.semester)})" for s in subjects[:MAX_LISTED_ITEMS]]
    if len(subjects) > MAX_LISTED_ITEMS:
        names.append(ELLIPSIS)
    subject_list = " and ".join(names) if names else "No subjects specified"

    return (
        f"Room Allocation for {_or(exam.name)}:\n"
        f"- Room: {_or(room.building)} Room {_or(room.room_number)} "
        f"(Capacity: {_or(room.capacity)})\n"
        f"- Subjects: {subject_list}\n"
        f"- Students: {len(room_allocation.students)} students\n"
        f"- Date: {format_date(room_allocation.date)}\n"
        f"- Time: {format_time(room_allocation.start_time)} to "
        f"{format_time(room_allocation.end_time)}"
    )
