from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..alerts import Alert, Severity


DEFAULT_CHANNEL_ID = "weather_alerts"
DEFAULT_CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"
GLOBAL_CITY_LABEL = "global"


@dataclass
class NotificationPayload:
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    android_priority: str = "normal"
    sound: str = "default"
    click_action: str | None = None
    channel_id: str | None = None
    mutable_content: bool = True


def build_alert_payload(
    alert: Alert,
    city: str | None,
    now: datetime | None = None,
    channel_id: str = DEFAULT_CHANNEL_ID,
    click_action: str = DEFAULT_CLICK_ACTION,
) -> NotificationPayload:
    return NotificationPayload(
        title=alert.title,
        body=alert.message,
        data={
            "severity": alert.severity.value,
            "city": city if city and city.strip() else GLOBAL_CITY_LABEL,
            "timestamp": _timestamp(now),
        },
        android_priority="high" if alert.severity is Severity.CRITICAL else "normal",
        click_action=click_action,
        channel_id=channel_id,
    )


def build_device_payload(
    alert: Alert,
    now: datetime | None = None,
    channel_id: str = DEFAULT_CHANNEL_ID,
) -> NotificationPayload:
    return NotificationPayload(
        title=alert.title,
        body=alert.message,
        data={
            "severity": alert.severity.value,
            "timestamp": _timestamp(now),
        },
        android_priority="high",
        channel_id=channel_id,
    )


def _timestamp(now: datetime | None) -> str:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
