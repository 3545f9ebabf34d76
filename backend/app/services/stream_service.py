import logging
from datetime import timedelta
from typing import Any

import httpx

from app.config import Settings
from app.core.exceptions import MessagingError
from app.core.security import create_stream_server_token, create_stream_user_token
from app.services.base import MessagingGateway

logger = logging.getLogger(__name__)

CHANNEL_TYPE = "messaging"
CALL_TYPE = "default"


class StreamMessagingGateway(MessagingGateway):
    """Stream chat + video over their REST APIs."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        chat_base_url: str = "https://chat.stream-io-api.com",
        video_base_url: str = "https://video.stream-io-api.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        headers = {
            "Authorization": create_stream_server_token(api_secret),
            "stream-auth-type": "jwt",
            "Content-Type": "application/json",
        }
        params = {"api_key": api_key}
        self._chat = httpx.AsyncClient(
            base_url=chat_base_url.rstrip("/"),
            headers=headers,
            params=params,
            timeout=timeout,
            transport=transport,
        )
        self._video = httpx.AsyncClient(
            base_url=video_base_url.rstrip("/"),
            headers=headers,
            params=params,
            timeout=timeout,
            transport=transport,
        )
        logger.info("Stream gateway initialized for api key %s", api_key[:6] + "..." if api_key else "<unset>")

    @classmethod
    def from_settings(cls, settings: Settings) -> "StreamMessagingGateway":
        return cls(
            api_key=settings.stream_api_key,
            api_secret=settings.stream_api_secret,
            chat_base_url=settings.stream_chat_base_url,
            video_base_url=settings.stream_video_base_url,
            timeout=settings.stream_timeout_seconds,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise MessagingError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise MessagingError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    # Video

    async def create_call(self, call_id: str, created_by_id: str, custom: dict[str, Any]) -> None:
        await self._request(
            self._video,
            "POST",
            f"/api/v2/video/call/{CALL_TYPE}/{call_id}",
            json={"data": {"created_by_id": created_by_id, "custom": custom}},
        )
        logger.info("Created video call %s", call_id)

    async def delete_call(self, call_id: str, hard: bool = True) -> None:
        await self._request(
            self._video,
            "POST",
            f"/api/v2/video/call/{CALL_TYPE}/{call_id}/delete",
            json={"hard": hard},
        )
        logger.info("Deleted video call %s (hard=%s)", call_id, hard)

    # Chat

    async def create_channel(
        self,
        channel_id: str,
        name: str,
        created_by_id: str,
        members: list[str]
    ) -> None:
        await self._request(
            self._chat,
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}/query",
            json={
                "data": {
                    "name": name,
                    "created_by": {"id": created_by_id},
                    "members": members,
                },
                "state": False,
            },
        )
        logger.info("Created chat channel %s", channel_id)

    async def add_channel_members(self, channel_id: str, members: list[str]) -> None:
        await self._request(
            self._chat,
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}",
            json={"add_members": members},
        )

    async def remove_channel_members(self, channel_id: str, members: list[str]) -> None:
        await self._request(
            self._chat,
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}",
            json={"remove_members": members},
        )

    async def delete_channel(self, channel_id: str) -> None:
        await self._request(self._chat, "DELETE", f"/channels/{CHANNEL_TYPE}/{channel_id}")
        logger.info("Deleted chat channel %s", channel_id)

    # Users

    async def upsert_user(self, user: dict[str, Any]) -> None:
        await self._request(self._chat, "POST", "/users", json={"users": {user["id"]: user}})
        logger.info("Stream user upserted: %s", user["id"])

    async def delete_user(self, user_id: str) -> None:
        await self._request(self._chat, "DELETE", f"/users/{user_id}")
        logger.info("Stream user deleted: %s", user_id)

    def create_user_token(self, user_id: str) -> str:
        return create_stream_user_token(self.api_secret, user_id, expires_delta=timedelta(hours=24))

    async def aclose(self) -> None:
        await self._chat.aclose()
        await self._video.aclose()
