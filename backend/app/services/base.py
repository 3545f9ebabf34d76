from abc import ABC, abstractmethod
from typing import Any


class MessagingGateway(ABC):
    """Abstract base class for the video + chat messaging platform."""

    @abstractmethod
    async def create_call(self, call_id: str, created_by_id: str, custom: dict[str, Any]) -> None:
        """Create (or fetch) a video call keyed by ``call_id``."""
        pass

    @abstractmethod
    async def delete_call(self, call_id: str, hard: bool = True) -> None:
        """Delete a video call."""
        pass

    @abstractmethod
    async def create_channel(
        self,
        channel_id: str,
        name: str,
        created_by_id: str,
        members: list[str]
    ) -> None:
        """Create a chat channel with its initial members."""
        pass

    @abstractmethod
    async def add_channel_members(self, channel_id: str, members: list[str]) -> None:
        """Add members to an existing chat channel."""
        pass

    @abstractmethod
    async def remove_channel_members(self, channel_id: str, members: list[str]) -> None:
        """Remove members from a chat channel."""
        pass

    @abstractmethod
    async def delete_channel(self, channel_id: str) -> None:
        """Delete a chat channel."""
        pass

    @abstractmethod
    async def upsert_user(self, user: dict[str, Any]) -> None:
        """Create or update a messaging user.

        Args:
            user: ``{"id": ..., "name": ..., "image": ...}``
        """
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        """Delete a messaging user."""
        pass

    @abstractmethod
    def create_user_token(self, user_id: str) -> str:
        """Issue a client token for ``user_id``."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
