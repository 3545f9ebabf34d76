import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.deps import get_current_user, get_session_service
from app.core.exceptions import SessionError
from app.models.user import User
from app.schemas.session import (
    SessionCreate,
    SessionEndResponse,
    SessionEnvelope,
    SessionListResponse,
    SessionResponse,
)
from app.services.session_service import SESSION_ENDED_MESSAGE, SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _http_error(error: SessionError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def _internal_error(operation: str, error: Exception) -> HTTPException:
    logger.exception(f"Error in {operation}: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


@router.post("", response_model=SessionEnvelope, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_create: SessionCreate,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """Create a session with its video call and chat channel."""
    try:
        session = await service.create_session(
            current_user, session_create.problem, session_create.difficulty
        )
        return SessionEnvelope(session=SessionResponse.model_validate(session))
    except SessionError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("createSession", e) from e


@router.get("/active", response_model=SessionListResponse)
async def get_active_sessions(
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """List the newest active sessions."""
    try:
        sessions = service.list_active_sessions()
        return SessionListResponse(sessions=[SessionResponse.model_validate(s) for s in sessions])
    except Exception as e:
        raise _internal_error("getActiveSessions", e) from e


@router.get("/mine", response_model=SessionListResponse)
async def get_my_recent_sessions(
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """List the current user's newest completed sessions."""
    try:
        sessions = service.list_my_recent_sessions(current_user)
        return SessionListResponse(sessions=[SessionResponse.model_validate(s) for s in sessions])
    except Exception as e:
        raise _internal_error("getMyRecentSessions", e) from e


@router.get("/{session_id}", response_model=SessionEnvelope)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """Get a session by ID."""
    try:
        session = service.get_session(session_id)
        return SessionEnvelope(session=SessionResponse.model_validate(session))
    except SessionError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("getSessionById", e) from e


@router.post("/{session_id}/join", response_model=SessionEnvelope)
async def join_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """Join a session as its participant."""
    try:
        session = await service.join_session(session_id, current_user)
        return SessionEnvelope(session=SessionResponse.model_validate(session))
    except SessionError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("joinSession", e) from e


@router.post("/{session_id}/end", response_model=SessionEndResponse)
async def end_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service)
):
    """End a session (host only)."""
    try:
        session, _cleanup = await service.end_session(session_id, current_user)
        return SessionEndResponse(
            session=SessionResponse.model_validate(session),
            message=SESSION_ENDED_MESSAGE,
        )
    except SessionError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("endSession", e) from e
