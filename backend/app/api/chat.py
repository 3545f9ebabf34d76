import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.deps import get_current_user, get_messaging_gateway
from app.models.user import User
from app.schemas.user import ChatTokenResponse
from app.services.base import MessagingGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/token", response_model=ChatTokenResponse)
async def get_chat_token(
    current_user: User = Depends(get_current_user),
    gateway: MessagingGateway = Depends(get_messaging_gateway)
):
    """Issue a messaging platform token for the current user."""
    try:
        token = gateway.create_user_token(current_user.external_id)
    except Exception as e:
        logger.exception(f"Error in getStreamToken: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error",
        ) from e

    return ChatTokenResponse(
        token=token,
        user_id=current_user.external_id,
        user_name=current_user.name,
        user_image=current_user.profile_image,
    )
