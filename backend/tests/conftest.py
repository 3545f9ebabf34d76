"""Shared fixtures: in-memory database, fake messaging gateway, API client."""
import os
import sys
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.deps import get_messaging_gateway
from app.core.exceptions import MessagingError
from app.core.security import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.services.base import MessagingGateway

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeGateway(MessagingGateway):
    """In-memory messaging platform.

    ``fail`` holds operation names that raise ``MessagingError``; ``hooks``
    maps operation names to callables run before the operation.
    """

    def __init__(self):
        self.calls: dict[str, dict[str, Any]] = {}
        self.channels: dict[str, dict[str, Any]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.log: list[tuple] = []
        self.fail: set[str] = set()
        self.hooks: dict[str, Any] = {}

    def _enter(self, operation: str, *args):
        self.log.append((operation, *args))
        hook = self.hooks.get(operation)
        if hook is not None:
            hook()
        if operation in self.fail:
            raise MessagingError(f"{operation} failed", status_code=503)

    def operations(self) -> list[str]:
        return [entry[0] for entry in self.log]

    async def create_call(self, call_id, created_by_id, custom):
        self._enter("create_call", call_id)
        self.calls[call_id] = {"created_by_id": created_by_id, "custom": custom}

    async def delete_call(self, call_id, hard=True):
        self._enter("delete_call", call_id, hard)
        self.calls.pop(call_id, None)

    async def create_channel(self, channel_id, name, created_by_id, members):
        self._enter("create_channel", channel_id)
        self.channels[channel_id] = {
            "name": name,
            "created_by_id": created_by_id,
            "members": list(members),
        }

    async def add_channel_members(self, channel_id, members):
        self._enter("add_channel_members", channel_id, tuple(members))
        self.channels[channel_id]["members"].extend(members)

    async def remove_channel_members(self, channel_id, members):
        self._enter("remove_channel_members", channel_id, tuple(members))
        channel = self.channels.get(channel_id)
        if channel is not None:
            channel["members"] = [m for m in channel["members"] if m not in members]

    async def delete_channel(self, channel_id):
        self._enter("delete_channel", channel_id)
        self.channels.pop(channel_id, None)

    async def upsert_user(self, user):
        self._enter("upsert_user", user["id"])
        self.users[user["id"]] = user

    async def delete_user(self, user_id):
        self._enter("delete_user", user_id)
        self.users.pop(user_id, None)

    def create_user_token(self, user_id):
        return f"token-for-{user_id}"


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


def _make_user(db, external_id: str, name: str) -> User:
    user = User(
        external_id=external_id,
        name=name,
        email=f"{external_id}@example.com",
        profile_image=f"https://img.example.com/{external_id}.png",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def host(db):
    return _make_user(db, "user_host", "Hanna Host")


@pytest.fixture
def guest(db):
    return _make_user(db, "user_guest", "Gus Guest")


@pytest.fixture
def third(db):
    return _make_user(db, "user_third", "Theo Third")


@pytest.fixture
def client(db, gateway):
    """API client bound to the test database and fake gateway."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_messaging_gateway] = lambda: gateway
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(data={"sub": user.external_id})
    return {"Authorization": f"Bearer {token}"}
