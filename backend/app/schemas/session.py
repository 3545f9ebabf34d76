from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.session import Difficulty, SessionStatus
from app.schemas.user import UserSummary


class SessionCreate(BaseModel):
    """Session creation schema.

    Both fields are optional at the schema level so that a missing value is
    reported as a 400 by the service rather than a framework 422.
    """
    problem: str | None = None
    difficulty: str | None = None

    @field_validator("problem", "difficulty", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class SessionResponse(BaseModel):
    """Session response schema."""
    id: str
    problem: str
    difficulty: Difficulty
    host_id: int
    participant_id: int | None = None
    host: UserSummary | None = None
    participant: UserSummary | None = None
    status: SessionStatus
    call_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SessionEnvelope(BaseModel):
    """Single session wrapper."""
    session: SessionResponse


class SessionListResponse(BaseModel):
    """Session list wrapper."""
    sessions: list[SessionResponse] = []


class SessionEndResponse(SessionEnvelope):
    """Ended session with confirmation message."""
    message: str
