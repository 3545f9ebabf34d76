import time
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import get_settings

settings = get_settings()


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create an identity JWT access token.

    Tokens are issued by the identity provider in production; this is used by
    local tooling and tests that need a signed token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=30)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode an identity JWT access token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None


def create_stream_server_token(api_secret: str) -> str:
    """Server-side token for the messaging platform REST APIs."""
    return jwt.encode({"server": True}, api_secret, algorithm="HS256")


def create_stream_user_token(api_secret: str, user_id: str, expires_delta: timedelta | None = None) -> str:
    """Client token letting a user connect to chat and video."""
    payload: dict = {"user_id": user_id, "iat": int(time.time())}
    if expires_delta:
        payload["exp"] = int(time.time() + expires_delta.total_seconds())
    return jwt.encode(payload, api_secret, algorithm="HS256")
