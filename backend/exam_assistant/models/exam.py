import uuid
from sqlalchemy import Column, ForeignKey, Integer, JSON, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_assistant.core.database import Base


exam_faculty = Table(
    "exam_faculty",
    Base.metadata,
    Column("exam_id", Uuid, ForeignKey("exams.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

exam_rooms = Table(
    "exam_rooms",
    Base.metadata,
    Column("exam_id", Uuid, ForeignKey("exams.id", ondelete="CASCADE"), primary_key=True),
    Column("room_id", Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True),
)


class Exam(Base):
    __tablename__ = "exams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # [{"semester": 3, "totalStudents": 120}, ...]
    semesters: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    subjects: Mapped[list["Subject"]] = relationship(
        "Subject", back_populates="exam", cascade="all, delete-orphan"
    )
    faculty: Mapped[list["User"]] = relationship("User", secondary=exam_faculty)
    rooms: Mapped[list["Room"]] = relationship("Room", secondary=exam_rooms)
