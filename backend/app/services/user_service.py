import logging

from sqlalchemy.orm import Session

from app.database import utcnow
from app.models.user import DELETED_USER_NAME, User
from app.schemas.user import IdentityUserData
from app.services.base import MessagingGateway

logger = logging.getLogger(__name__)


class UserService:
    """Mirrors identity provider users locally and on the messaging platform."""

    def __init__(self, db: Session, gateway: MessagingGateway):
        self.db = db
        self.gateway = gateway

    @staticmethod
    def get_user_by_external_id(db: Session, external_id: str) -> User | None:
        """Get a user by identity provider id, deleted users included."""
        return db.query(User).filter(User.external_id == external_id).first()

    @staticmethod
    def get_active_user(db: Session, external_id: str) -> User | None:
        """Get a user that can still authenticate."""
        return (
            db.query(User)
            .filter(User.external_id == external_id, User.deleted_at.is_(None))
            .first()
        )

    async def sync_user(self, data: IdentityUserData) -> User:
        """Create or update the local user, then the messaging user."""
        external_id = str(data.id)
        email = data.primary_email
        if not email:
            raise ValueError("User event has no email address")

        user = self.get_user_by_external_id(self.db, external_id)
        if user is None:
            user = User(external_id=external_id)
            self.db.add(user)
        user.email = email
        user.name = data.full_name
        user.profile_image = data.image_url
        user.deleted_at = None
        self.db.commit()
        self.db.refresh(user)

        try:
            await self.gateway.upsert_user(
                {"id": external_id, "name": user.name, "image": user.profile_image}
            )
        except Exception as e:
            logger.error(f"Error upserting Stream user {external_id}: {e}")

        return user

    async def delete_user(self, external_id: str) -> bool:
        """Anonymise the local user, then delete the messaging user.

        The row stays so sessions that reference it keep their host and
        participant.

        Returns:
            Whether a local user existed.
        """
        user = self.get_user_by_external_id(self.db, external_id)
        if user is not None:
            user.name = DELETED_USER_NAME
            user.email = ""
            user.profile_image = None
            if user.deleted_at is None:
                user.deleted_at = utcnow()
            self.db.commit()

        try:
            await self.gateway.delete_user(external_id)
        except Exception as e:
            logger.error(f"Error deleting Stream user {external_id}: {e}")

        return user is not None
