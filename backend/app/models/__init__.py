from app.models.session import Difficulty, Session, SessionStatus
from app.models.user import User

__all__ = [
    "User",
    "Session",
    "Difficulty",
    "SessionStatus",
]
