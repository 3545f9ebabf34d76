from typing import Any

from pydantic import BaseModel, EmailStr


class UserSummary(BaseModel):
    """Identity fields shown next to a session."""
    id: int
    external_id: str
    name: str
    email: str
    profile_image: str | None = None

    class Config:
        from_attributes = True


class EmailAddress(BaseModel):
    """Email entry of an identity event."""
    email_address: EmailStr


class IdentityUserData(BaseModel):
    """User payload sent by the identity provider."""
    id: str | int
    email_addresses: list[EmailAddress] = []
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None

    @property
    def primary_email(self) -> str | None:
        if not self.email_addresses:
            return None
        return str(self.email_addresses[0].email_address)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}"


class IdentityEvent(BaseModel):
    """Identity provider webhook envelope."""
    type: str
    data: dict[str, Any]


class ChatTokenResponse(BaseModel):
    """Messaging platform credentials for the current user."""
    token: str
    user_id: str
    user_name: str
    user_image: str | None = None
