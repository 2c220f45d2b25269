from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable, Iterable

from .alerts import Alert, Severity
from .config import Config
from .errors import AuthError, DeliveryError
from .notifiers.base import BaseDispatcher
from .notifiers.message import (
    DEFAULT_CHANNEL_ID,
    DEFAULT_CLICK_ACTION,
    build_alert_payload,
    build_device_payload,
)
from .results import AlertReport, BatchReport, DeliveryOutcome, DispatchResult
from .topics import CITY_TOPIC_SUFFIX, GLOBAL_TOPIC, audience_topics


@dataclass
class NotifierSettings:
    notify_severities: set[Severity] = field(
        default_factory=lambda: {Severity.HIGH, Severity.CRITICAL}
    )
    global_topic: str = GLOBAL_TOPIC
    city_suffix: str = CITY_TOPIC_SUFFIX
    channel_id: str = DEFAULT_CHANNEL_ID
    click_action: str = DEFAULT_CLICK_ACTION

    @classmethod
    def from_config(cls, config: Config) -> NotifierSettings:
        return cls(
            notify_severities={Severity.parse(item) for item in config.dispatch.notify_severities},
            global_topic=config.topics.global_topic,
            city_suffix=config.topics.city_suffix,
            channel_id=config.dispatch.android_channel_id,
            click_action=config.dispatch.click_action,
        )


class AlertNotifier:
    def __init__(
        self,
        dispatcher: BaseDispatcher,
        settings: NotifierSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._settings = settings or NotifierSettings()
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    @property
    def dispatcher(self) -> BaseDispatcher:
        return self._dispatcher

    def should_notify(self, alert: Alert) -> bool:
        return alert.severity in self._settings.notify_severities

    def topics_for(self, city: str | None) -> list[str]:
        return audience_topics(city, self._settings.global_topic, self._settings.city_suffix)

    async def dispatch(self, alert: Alert, city: str | None = None) -> DispatchResult:
        """Publish one alert to the global topic and, if given, the city topic.

        Every topic is attempted even when an earlier one fails. DeliveryError is
        raised afterwards if any publish failed; it carries the full result.
        """
        payload = build_alert_payload(
            alert,
            city,
            now=self._now(),
            channel_id=self._settings.channel_id,
            click_action=self._settings.click_action,
        )
        result = DispatchResult()
        for topic in self.topics_for(city):
            try:
                outcome = await self._dispatcher.publish(topic, payload)
            except DeliveryError as exc:
                self._logger.error("Error sending notification to %s: %s", topic, exc.detail)
                outcome = DeliveryOutcome(target=topic, success=False, error=exc.detail)
            except AuthError as exc:
                self._logger.error("Unable to authorize send to %s: %s", topic, exc)
                outcome = DeliveryOutcome(target=topic, success=False, error=str(exc))
            result.outcomes.append(outcome)

        if result.failed:
            targets = ", ".join(outcome.target for outcome in result.failed)
            details = "; ".join(f"{o.target}: {o.error}" for o in result.failed)
            raise DeliveryError(targets, details, result=result)
        return result

    async def dispatch_to_device(self, device_token: str, alert: Alert) -> DispatchResult:
        payload = build_device_payload(alert, now=self._now(), channel_id=self._settings.channel_id)
        outcome = await self._dispatcher.send_to_device(device_token, payload)
        return DispatchResult(outcomes=[outcome])

    async def notify_for_updated_alerts(
        self,
        alerts: Iterable[Alert],
        city: str | None = None,
    ) -> BatchReport:
        report = BatchReport()
        for alert in alerts:
            if not self.should_notify(alert):
                self._logger.debug("Skipping %s alert: %s", alert.severity.value, alert.title)
                report.reports.append(AlertReport(alert=alert, status="skipped"))
                continue
            try:
                result = await self.dispatch(alert, city)
            except DeliveryError as exc:
                self._logger.error("Failed to send alert notification for %s: %s", alert.title, exc)
                report.reports.append(
                    AlertReport(alert=alert, status="failed", result=exc.result, error=str(exc))
                )
                continue
            report.reports.append(AlertReport(alert=alert, status="sent", result=result))

        self._logger.info(
            "Alert batch complete: %s sent, %s skipped, %s failed",
            report.sent,
            report.skipped,
            report.failed,
        )
        return report

    async def send_test_notification(
        self,
        title: str,
        message: str,
        severity: Severity | str | None = None,
        city: str | None = None,
    ) -> DispatchResult:
        alert = Alert(title=title, message=message, severity=Severity.parse(severity))
        return await self.dispatch(alert, city)

    def _now(self) -> datetime | None:
        return self._clock() if self._clock else None
