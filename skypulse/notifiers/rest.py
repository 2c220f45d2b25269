from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from ..auth import AccessToken, ServiceAccountCredential, TokenCache, get_access_token
from ..errors import DeliveryError
from ..results import DeliveryOutcome
from .base import BaseDispatcher
from .message import NotificationPayload


FCM_BASE_URL = "https://fcm.googleapis.com"


@dataclass
class FcmRestSettings:
    project_id: str
    credential: ServiceAccountCredential
    endpoint_base_url: str = FCM_BASE_URL
    token_url: str = "https://oauth2.googleapis.com/token"
    timeout_seconds: int = 10
    user_agent: str = "skypulse/0.1"
    cache_tokens: bool = True


class FcmRestDispatcher(BaseDispatcher):
    def __init__(
        self,
        settings: FcmRestSettings,
        client: httpx.AsyncClient | None = None,
        token_cache: TokenCache | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        if token_cache is None and settings.cache_tokens:
            token_cache = TokenCache(token_url=settings.token_url)
        self._token_cache = token_cache
        self._logger = logging.getLogger(__name__)

    @property
    def send_url(self) -> str:
        base = self._settings.endpoint_base_url.rstrip("/")
        return f"{base}/v1/projects/{self._settings.project_id}/messages:send"

    async def dispatch_via_rest(
        self,
        topic: str,
        notification: dict[str, str],
        data: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        envelope = build_envelope({"topic": topic}, notification, data or {})
        return await self._send(topic, envelope)

    async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
        response = await self.dispatch_via_rest(
            topic,
            {"title": payload.title, "body": payload.body},
            payload.data,
        )
        self._logger.info("Notification sent to %s: %s", topic, payload.title)
        return DeliveryOutcome(target=topic, success=True, message_id=response.get("name"))

    async def send_to_device(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        envelope = build_envelope(
            {"token": token},
            {"title": payload.title, "body": payload.body},
            payload.data,
        )
        response = await self._send(token, envelope)
        self._logger.info("Notification sent to device: %s", payload.title)
        return DeliveryOutcome(target=token, success=True, message_id=response.get("name"))

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _send(self, target: str, envelope: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        token = await self._access_token(client)
        headers = {
            "Authorization": f"Bearer {token.value}",
            "User-Agent": self._settings.user_agent,
        }
        try:
            response = await client.post(self.send_url, json=envelope, headers=headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(target, str(exc)) from exc

        if not 200 <= response.status_code < 300:
            self._logger.error("FCM send to %s failed with status %s", target, response.status_code)
            raise DeliveryError(target, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise DeliveryError(target, f"Unparseable provider response: {response.text}") from exc

    async def _access_token(self, client: httpx.AsyncClient) -> AccessToken:
        if self._token_cache is not None:
            return await self._token_cache.get(self._settings.credential, client)
        return await get_access_token(self._settings.credential, client, self._settings.token_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
            self._owns_client = True
        return self._client


def build_envelope(
    address: dict[str, str],
    notification: dict[str, str],
    data: dict[str, str],
) -> dict[str, Any]:
    return {
        "message": {
            **address,
            "notification": {
                "title": notification.get("title", ""),
                "body": notification.get("body", ""),
            },
            "data": {str(key): str(value) for key, value in data.items()},
            "android": {"priority": "HIGH"},
        }
    }
