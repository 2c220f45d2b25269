from __future__ import annotations

import unittest
from datetime import datetime, timezone

from skypulse.alerts import Alert, Severity
from skypulse.errors import AuthError, DeliveryError
from skypulse.notifiers.base import BaseDispatcher
from skypulse.notifiers.message import NotificationPayload
from skypulse.orchestrator import AlertNotifier, NotifierSettings
from skypulse.results import DeliveryOutcome


class FakeDispatcher(BaseDispatcher):
    def __init__(self, failing_topics: set[str] | None = None, fail_titles: set[str] | None = None) -> None:
        self.failing_topics = failing_topics or set()
        self.fail_titles = fail_titles or set()
        self.published: list[tuple[str, NotificationPayload]] = []
        self.devices: list[tuple[str, NotificationPayload]] = []

    async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
        self.published.append((topic, payload))
        if topic in self.failing_topics or payload.title in self.fail_titles:
            raise DeliveryError(topic, "provider unavailable")
        return DeliveryOutcome(target=topic, success=True, message_id=f"msg-{len(self.published)}")

    async def send_to_device(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        self.devices.append((token, payload))
        if token == "expired-token":
            raise DeliveryError(token, "unregistered")
        return DeliveryOutcome(target=token, success=True, message_id="device-msg")


def _alert(title: str = "Heavy Rain Alert", severity: Severity = Severity.HIGH) -> Alert:
    return Alert(title=title, message="Heavy rain expected", severity=severity)


def _fixed_clock() -> datetime:
    return datetime(2025, 7, 1, 12, 30, tzinfo=timezone.utc)


class OrchestratorTests(unittest.IsolatedAsyncioTestCase):
    async def test_high_and_critical_publish_to_global_topic_once(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher)
        alerts = [_alert("a", Severity.HIGH), _alert("b", Severity.CRITICAL)]

        report = await notifier.notify_for_updated_alerts(alerts)

        self.assertEqual([topic for topic, _ in dispatcher.published], ["all_alerts", "all_alerts"])
        self.assertEqual(report.sent, 2)

    async def test_low_and_medium_are_skipped(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher)
        alerts = [
            _alert("a", Severity.LOW),
            _alert("b", Severity.MEDIUM),
            Alert(title="c", message="default severity"),
        ]

        report = await notifier.notify_for_updated_alerts(alerts, "Islamabad")

        self.assertEqual(dispatcher.published, [])
        self.assertEqual(report.skipped, 3)
        self.assertEqual(report.sent, 0)

    async def test_city_topic_follows_global_topic(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher, clock=_fixed_clock)

        result = await notifier.dispatch(_alert(), "North Nazimabad")

        self.assertEqual(result.sent_to, ["all_alerts", "north_nazimabad_alerts"])
        payloads = [payload for _, payload in dispatcher.published]
        self.assertEqual(payloads[0].data["city"], "North Nazimabad")
        self.assertEqual(payloads[0].data["timestamp"], "2025-07-01T12:30:00Z")
        self.assertIs(payloads[0], payloads[1])

    async def test_blank_city_only_targets_global_topic(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher)

        result = await notifier.dispatch(_alert(), "   ")

        self.assertEqual(result.sent_to, ["all_alerts"])
        self.assertEqual(dispatcher.published[0][1].data["city"], "global")

    async def test_global_failure_still_attempts_city_topic(self) -> None:
        dispatcher = FakeDispatcher(failing_topics={"all_alerts"})
        notifier = AlertNotifier(dispatcher)

        with self.assertRaises(DeliveryError) as ctx:
            await notifier.dispatch(_alert(), "Karachi")

        self.assertEqual([topic for topic, _ in dispatcher.published], ["all_alerts", "karachi_alerts"])
        result = ctx.exception.result
        self.assertIsNotNone(result)
        self.assertEqual(result.sent_to, ["karachi_alerts"])
        self.assertEqual([outcome.target for outcome in result.failed], ["all_alerts"])
        self.assertEqual(ctx.exception.target, "all_alerts")

    async def test_failed_alert_does_not_stop_the_batch(self) -> None:
        dispatcher = FakeDispatcher(fail_titles={"second"})
        notifier = AlertNotifier(dispatcher)
        alerts = [_alert("first"), _alert("second"), _alert("third"), _alert("fourth")]

        report = await notifier.notify_for_updated_alerts(alerts, "Lahore")

        titles = [payload.title for topic, payload in dispatcher.published if topic == "all_alerts"]
        self.assertEqual(titles, ["first", "second", "third", "fourth"])
        self.assertEqual([entry.status for entry in report.reports], ["sent", "failed", "sent", "sent"])
        self.assertEqual(report.failed, 1)
        self.assertIn("provider unavailable", report.reports[1].error)

    async def test_auth_failure_is_isolated_per_alert(self) -> None:
        class ExpiringDispatcher(FakeDispatcher):
            async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
                if payload.title == "first":
                    raise AuthError("token endpoint returned 400")
                return await super().publish(topic, payload)

        dispatcher = ExpiringDispatcher()
        notifier = AlertNotifier(dispatcher)

        report = await notifier.notify_for_updated_alerts([_alert("first"), _alert("second")])

        self.assertEqual([entry.status for entry in report.reports], ["failed", "sent"])

    async def test_auth_failure_on_city_topic_keeps_global_success(self) -> None:
        class CityAuthFailureDispatcher(FakeDispatcher):
            async def publish(self, topic: str, payload: NotificationPayload) -> DeliveryOutcome:
                if topic == "karachi_alerts":
                    self.published.append((topic, payload))
                    raise AuthError("token endpoint returned 400")
                return await super().publish(topic, payload)

        dispatcher = CityAuthFailureDispatcher()
        notifier = AlertNotifier(dispatcher)

        with self.assertRaises(DeliveryError) as ctx:
            await notifier.dispatch(_alert(), "Karachi")

        result = ctx.exception.result
        self.assertEqual(result.sent_to, ["all_alerts"])
        self.assertEqual([outcome.target for outcome in result.failed], ["karachi_alerts"])
        self.assertIn("token endpoint returned 400", result.failed[0].error)

        report = await notifier.notify_for_updated_alerts([_alert()], "Karachi")
        self.assertEqual(report.reports[0].status, "failed")
        self.assertEqual(report.reports[0].result.sent_to, ["all_alerts"])

    async def test_configured_severities_are_honoured(self) -> None:
        dispatcher = FakeDispatcher()
        settings = NotifierSettings(notify_severities={Severity.CRITICAL})
        notifier = AlertNotifier(dispatcher, settings)

        report = await notifier.notify_for_updated_alerts(
            [_alert("a", Severity.HIGH), _alert("b", Severity.CRITICAL)]
        )

        self.assertEqual([entry.status for entry in report.reports], ["skipped", "sent"])

    async def test_device_dispatch_is_always_high_priority(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher)

        result = await notifier.dispatch_to_device("device-1", _alert(severity=Severity.LOW))

        self.assertEqual(result.sent_to, ["device-1"])
        payload = dispatcher.devices[0][1]
        self.assertEqual(payload.android_priority, "high")
        self.assertEqual(payload.data["severity"], "low")

    async def test_device_dispatch_propagates_delivery_error(self) -> None:
        notifier = AlertNotifier(FakeDispatcher())

        with self.assertRaises(DeliveryError):
            await notifier.dispatch_to_device("expired-token", _alert())

    async def test_test_notification_ignores_severity_filter(self) -> None:
        dispatcher = FakeDispatcher()
        notifier = AlertNotifier(dispatcher)

        result = await notifier.send_test_notification("Test", "body", None, "Islamabad")

        self.assertEqual(result.sent_to, ["all_alerts", "islamabad_alerts"])
        self.assertEqual(dispatcher.published[0][1].data["severity"], "medium")
