from app.schemas.session import (
    SessionCreate,
    SessionEndResponse,
    SessionEnvelope,
    SessionListResponse,
    SessionResponse,
)
from app.schemas.user import ChatTokenResponse, IdentityEvent, IdentityUserData, UserSummary

__all__ = [
    "UserSummary", "IdentityEvent", "IdentityUserData", "ChatTokenResponse",
    "SessionCreate", "SessionResponse", "SessionEnvelope", "SessionListResponse",
    "SessionEndResponse",
]
