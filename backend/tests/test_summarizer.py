"""Tests for the entity summarizer."""

import datetime as dt

from conftest import (
    make_allocation,
    make_exam,
    make_faculty,
    make_room,
    make_room_allocation,
    make_subject,
)
from exam_assistant.services.chatbot.summarizer import (
    build_allocation_text,
    build_exam_text,
    build_room_allocation_text,
    format_date,
    format_time,
)


def test_format_date() -> None:
    assert format_date(dt.date(2025, 1, 5)) == "January 5, 2025"
    assert format_date(None) == "N/A"


def test_format_time_keeps_stored_value() -> None:
    assert format_time("14:30") == "14:30"
    assert format_time("09:05") == "09:05"
    assert format_time("") == "N/A"
    assert format_time(None) == "N/A"
    assert format_time("after lunch") == "after lunch"


def test_exam_text_truncates_long_lists() -> None:
    exam = make_exam("Midterm", semesters=[{"semester": 3, "totalStudents": 120}])
    subjects = [make_subject(f"Subject {i}", subject_code=f"CS30{i}") for i in range(5)]

    text = build_exam_text(exam, subjects, [], [])

    assert text.startswith("Exam: Midterm (Year: 2025)")
    assert "Sem 3 (120 students)" in text
    assert "Subject 0 (CS300)" in text
    assert "Subject 2 (CS302)" in text
    assert "Subject 3" not in text
    assert "  - ..." in text


def test_exam_text_uses_placeholders_for_missing_data() -> None:
    exam = make_exam("Final", year=None, semesters=[])

    text = build_exam_text(exam)

    assert "(Year: N/A)" in text
    assert "- Semesters: Not specified" in text
    assert text.count("  - Not specified") == 3


def test_allocation_text() -> None:
    exam = make_exam("Midterm")
    subject = make_subject("Data Structures", semester=3)
    room = make_room("A-101", building="Main Block")
    faculty = make_faculty("Dr. Rao", designation=None)
    allocation = make_allocation(
        exam, subject, room, faculty,
        date=dt.date(2025, 3, 17), start_time="10:00", end_time="13:00",
    )

    text = build_allocation_text(allocation, exam, subject, room, faculty)

    assert text == (
        "Allocation for Midterm:\n"
        "- Faculty: Dr. Rao (Not specified)\n"
        "- Subject: Data Structures (Sem 3)\n"
        "- Room: Main Block Room A-101\n"
        "- Date: March 17, 2025\n"
        "- Time: 10:00 to 13:00"
    )


def test_room_allocation_text() -> None:
    exam = make_exam("Midterm")
    room = make_room("A-101", capacity=40)
    subjects = [make_subject(f"Subject {i}") for i in range(4)]
    room_allocation = make_room_allocation(exam, room, subjects, students=["S1", "S2"])

    text = build_room_allocation_text(room_allocation, exam, room, subjects)

    assert "Room Allocation for Midterm:" in text
    assert "(Capacity: 40)" in text
    assert "Subject 0 (Sem 3) and Subject 1 (Sem 3) and Subject 2 (Sem 3) and ..." in text
    assert "- Students: 2 students" in text


def test_room_allocation_without_subjects() -> None:
    exam = make_exam("Midterm")
    room = make_room("A-101")
    room_allocation = make_room_allocation(exam, room, [], students=[])

    text = build_room_allocation_text(room_allocation, exam, room, [])

    assert "- Subjects: No subjects specified" in text
    assert "- Students: 0 students" in text


def test_summaries_are_deterministic() -> None:
    exam = make_exam("Midterm")
    subjects = [make_subject("Data Structures")]
    faculty = [make_faculty("Dr. Rao")]
    rooms = [make_room("A-101")]

    assert build_exam_text(exam, subjects, faculty, rooms) == build_exam_text(
        exam, subjects, faculty, rooms
    )
