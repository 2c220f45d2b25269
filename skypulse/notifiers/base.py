from __future__ import annotations

from abc import ABC, abstractmethod

from ..results import DeliveryOutcome
from .message import NotificationPayload


class BaseDispatcher(ABC):
    @abstractmethod
    async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
        """Publish to a topic. Raises DeliveryError if the provider rejects it."""
        raise NotImplementedError

    @abstractmethod
    async def send_to_device(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        """Send to a single device token. Raises DeliveryError on failure."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
