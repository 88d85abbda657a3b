import uuid
import datetime as dt
from sqlalchemy import Column, Date, ForeignKey, Integer, JSON, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_assistant.core.database import Base


room_allocation_subjects = Table(
    "room_allocation_subjects",
    Base.metadata,
    Column(
        "room_allocation_id",
        Uuid,
        ForeignKey("room_allocations.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("subject_id", Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class Allocation(Base):
    """A faculty member's invigilation duty for one subject in one room."""

    __tablename__ = "allocations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False
    )
    subject_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
    )
    faculty_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)

    # Relationships
    exam: Mapped["Exam"] = relationship("Exam")
    subject: Mapped["Subject"] = relationship("Subject")
    room: Mapped["Room"] = relationship("Room")
    faculty: Mapped["User"] = relationship("User", back_populates="allocations")


class RoomAllocation(Base):
    """Student seating for one room in one exam session."""

    __tablename__ = "room_allocations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    students: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    exam: Mapped["Exam"] = relationship("Exam")
    room: Mapped["Room"] = relationship("Room")
    subjects: Mapped[list["Subject"]] = relationship(
        "Subject", secondary=room_allocation_subjects
    )
