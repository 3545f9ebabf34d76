from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base, utcnow

DELETED_USER_NAME = "Deleted user"


class User(Base):
    """User mirrored from the identity provider.

    Sessions keep referencing a user after the identity provider deletes it,
    so deletion anonymises the row and stamps ``deleted_at`` instead of
    removing it.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, default="")
    email = Column(String, index=True, nullable=False)
    profile_image = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<User(id={self.id}, external_id={self.external_id})>"
