import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.core.deps import get_user_service
from app.schemas.user import IdentityEvent, IdentityUserData
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

INVALID_PAYLOAD = "Invalid user payload"


def verify_webhook_secret(x_webhook_secret: str | None = Header(None)) -> None:
    """Reject events that do not carry the shared secret."""
    expected = get_settings().webhook_secret
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )


def _store_conflict(service: UserService, event_type: str, e: Exception) -> HTTPException:
    service.db.rollback()
    logger.exception(f"Could not apply identity event {event_type}: {e}")
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="User event could not be applied",
    )


@router.post("/users", dependencies=[Depends(verify_webhook_secret)])
async def handle_user_event(
    event: IdentityEvent,
    service: UserService = Depends(get_user_service)
):
    """Sync users on identity provider lifecycle events."""
    if event.type == "user.created":
        try:
            data = IdentityUserData.model_validate(event.data)
            user = await service.sync_user(data)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Rejected user.created event: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=INVALID_PAYLOAD,
            ) from e
        except SQLAlchemyError as e:
            raise _store_conflict(service, event.type, e) from e
        logger.info(f"Synced user {user.external_id}")
        return {"status": "synced", "user_id": user.external_id}

    if event.type == "user.deleted":
        external_id = event.data.get("id")
        if external_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=INVALID_PAYLOAD,
            )
        try:
            existed = await service.delete_user(str(external_id))
        except SQLAlchemyError as e:
            raise _store_conflict(service, event.type, e) from e
        logger.info(f"Deleted user {external_id} (existed={existed})")
        return {"status": "deleted", "user_id": str(external_id)}

    logger.info(f"Ignoring identity event {event.type}")
    return {"status": "ignored"}
