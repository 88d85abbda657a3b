from exam_assistant.models.user import User, UserRole
from exam_assistant.models.room import Room
from exam_assistant.models.exam import Exam
from exam_assistant.models.subject import Subject
from exam_assistant.models.allocation import Allocation, RoomAllocation

__all__ = [
    "User",
    "UserRole",
    "Room",
    "Exam",
    "Subject",
    "Allocation",
    "RoomAllocation",
]
