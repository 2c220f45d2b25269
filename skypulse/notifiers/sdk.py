from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import firebase_admin
from firebase_admin import credentials, exceptions, messaging
from google.auth import exceptions as google_auth_exceptions

from ..auth import ServiceAccountCredential, load_service_account
from ..errors import AuthError, DeliveryError
from ..results import DeliveryOutcome
from .base import BaseDispatcher
from .message import NotificationPayload


@dataclass
class FirebaseSettings:
    project_id: str
    credential: ServiceAccountCredential | None = None
    credentials_path: str | None = None
    timeout_seconds: int = 10


def build_firebase_app(settings: FirebaseSettings) -> firebase_admin.App:
    name = f"skypulse-{settings.project_id}"
    try:
        return firebase_admin.get_app(name)
    except ValueError:
        pass

    credential = settings.credential
    if settings.credentials_path:
        credential = load_service_account(settings.credentials_path)
    if credential is None:
        raise ValueError("Firebase dispatcher needs a service account or credentials_path")

    return firebase_admin.initialize_app(
        credentials.Certificate(_certificate_info(credential)),
        options={"projectId": settings.project_id, "httpTimeout": settings.timeout_seconds},
        name=name,
    )


class FirebaseDispatcher(BaseDispatcher):
    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app
        self._logger = logging.getLogger(__name__)

    async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
        message = build_topic_message(topic, payload)
        message_id = await self._send(topic, message)
        self._logger.info("Notification sent to %s: %s", topic, payload.title)
        return DeliveryOutcome(target=topic, success=True, message_id=message_id)

    async def send_to_device(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        message = build_device_message(token, payload)
        message_id = await self._send(token, message)
        self._logger.info("Notification sent to device: %s", payload.title)
        return DeliveryOutcome(target=token, success=True, message_id=message_id)

    async def _send(self, target: str, message: messaging.Message) -> str:
        try:
            return await asyncio.to_thread(messaging.send, message, app=self._app)
        except messaging.UnregisteredError as exc:
            raise DeliveryError(target, f"unregistered: {exc}") from exc
        except exceptions.FirebaseError as exc:
            raise DeliveryError(target, f"{exc.code}: {exc}") from exc
        except google_auth_exceptions.GoogleAuthError as exc:
            raise AuthError(f"Unable to authorize firebase-admin: {exc}") from exc
        except ValueError as exc:
            # Raised by the SDK's message encoder before anything is sent.
            raise DeliveryError(target, f"invalid message: {exc}") from exc


def build_topic_message(topic: str, payload: NotificationPayload) -> messaging.Message:
    return messaging.Message(
        topic=topic,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=dict(payload.data),
        android=messaging.AndroidConfig(
            priority=payload.android_priority,
            notification=messaging.AndroidNotification(
                sound=payload.sound,
                click_action=payload.click_action,
                channel_id=payload.channel_id,
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound=payload.sound, mutable_content=payload.mutable_content),
            ),
        ),
    )


def build_device_message(token: str, payload: NotificationPayload) -> messaging.Message:
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=dict(payload.data),
        android=messaging.AndroidConfig(priority="high"),
    )


def _certificate_info(credential: ServiceAccountCredential) -> dict[str, Any]:
    info = {
        "type": "service_account",
        "project_id": credential.project_id,
        "client_email": credential.client_email,
        "private_key": credential.private_key,
        "token_uri": credential.token_uri,
    }
    if credential.private_key_id:
        info["private_key_id"] = credential.private_key_id
    return info
