from focustimer.models.base import Base
from focustimer.models.session import Session
from focustimer.models.task import Task
from focustimer.models.user import User

__all__ = [
    "Base",
    "Session",
    "Task",
    "User",
]
