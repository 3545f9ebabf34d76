from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.security import decode_access_token
from app.database import get_db
from app.models.user import User
from app.services.base import MessagingGateway
from app.services.session_service import SessionService
from app.services.user_service import UserService

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the identity token to the local user (internal + external id)."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    external_id = payload.get("sub")
    if external_id is None:
        raise _unauthorized()

    user = UserService.get_active_user(db, str(external_id))
    if user is None:
        raise _unauthorized("User not found")

    return user


def get_messaging_gateway(request: Request) -> MessagingGateway:
    """Gateway owned by the application, created at startup."""
    return request.app.state.messaging_gateway


def get_session_service(
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_messaging_gateway),
) -> SessionService:
    return SessionService(db, gateway, list_limit=get_settings().session_list_limit)


def get_user_service(
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_messaging_gateway),
) -> UserService:
    return UserService(db, gateway)
