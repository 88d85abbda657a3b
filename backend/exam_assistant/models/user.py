import uuid
from enum import Enum
from sqlalchemy import Boolean, String, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_assistant.core.database import Base


class UserRole(str, Enum):
    ADMIN = "Admin"
    FACULTY = "Faculty"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole), nullable=False, default=UserRole.FACULTY
    )
    designation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    allocations: Mapped[list["Allocation"]] = relationship(
        "Allocation", back_populates="faculty"
    )
