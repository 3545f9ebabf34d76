"""Coding session room model."""
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base, utcnow


class Difficulty(str, enum.Enum):
    """Problem difficulty."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionStatus(str, enum.Enum):
    """Session status, only ever moves from ACTIVE to COMPLETED."""
    ACTIVE = "active"
    COMPLETED = "completed"


def new_call_id() -> str:
    """Correlation id shared by the row, the video call and the chat channel."""
    return f"session_{uuid.uuid4()}"


class Session(Base):
    """A practice room pairing one problem, a host, at most one participant,
    a video call and a chat channel, all keyed by ``call_id``."""

    __tablename__ = "sessions"

    id = Column(String, primary_key=True, index=True, default=lambda: uuid.uuid4().hex)
    problem = Column(String, nullable=False)
    difficulty = Column(Enum(Difficulty, values_callable=lambda e: [m.value for m in e]), nullable=False)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(
        Enum(SessionStatus, values_callable=lambda e: [m.value for m in e]),
        default=SessionStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    call_id = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    host = relationship("User", foreign_keys=[host_id])
    participant = relationship("User", foreign_keys=[participant_id])

    def __repr__(self):
        return f"<Session(id={self.id}, call_id={self.call_id}, status={self.status})>"
