from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from .alerts import Severity, load_alerts
from .config import Config, load_config
from .errors import SkyPulseError
from .notifiers.factory import build_dispatcher
from .orchestrator import AlertNotifier, NotifierSettings
from .snapshot import load_snapshot


def main() -> None:
    args = _parse_args()
    _configure_logging(args.verbose)
    if args.init_config:
        _init_config(Path(args.config))
        return
    if args.snapshot:
        print(load_snapshot(args.snapshot).summary())
        return

    config = load_config(args.config)
    notifier = _build_notifier(config)

    if args.serve:
        _serve(config, notifier)
        return
    if args.test_notify:
        asyncio.run(_test_notify(notifier, args.city))
        return
    if args.alerts:
        asyncio.run(_notify_batch(notifier, args.alerts, args.city))
        return
    raise SystemExit("Nothing to do: pass --serve, --test-notify, --alerts or --snapshot")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weather alert push notifications")
    parser.add_argument("--config", default="./config.yaml")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--init-config", action="store_true", help="Create a config.yaml template and exit")
    parser.add_argument("--test-notify", action="store_true", help="Send a test notification and exit")
    parser.add_argument("--alerts", help="JSON file with a list of alerts to notify for")
    parser.add_argument("--city", help="City whose topic also receives the alerts")
    parser.add_argument("--serve", action="store_true", help="Run the test notification endpoint")
    parser.add_argument("--snapshot", help="Print the widget weather snapshot stored in this file")
    return parser.parse_args()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def _build_notifier(config: Config) -> AlertNotifier:
    return AlertNotifier(build_dispatcher(config), NotifierSettings.from_config(config))


def _init_config(target: Path) -> None:
    if target.exists():
        raise SystemExit(f"Config already exists at {target}")
    root = Path(__file__).resolve().parents[1]
    template = root / "config.example.yaml"
    if not template.exists():
        raise SystemExit("config.example.yaml not found")
    target.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
    print(f"Wrote config template to {target}")


async def _test_notify(notifier: AlertNotifier, city: str | None) -> None:
    try:
        result = await notifier.send_test_notification(
            "SkyPulse test alert",
            "This is a synthetic test notification to verify push delivery.",
            Severity.CRITICAL,
            city,
        )
    except SkyPulseError as exc:
        raise SystemExit(f"Test notification failed: {exc}")
    finally:
        await notifier.dispatcher.close()
    print(f"Test notification sent to: {', '.join(result.sent_to)}")


async def _notify_batch(notifier: AlertNotifier, path: str, city: str | None) -> None:
    alerts = load_alerts(path)
    try:
        report = await notifier.notify_for_updated_alerts(alerts, city)
    finally:
        await notifier.dispatcher.close()
    print(json.dumps([entry.to_dict() for entry in report.reports], indent=2))


def _serve(config: Config, notifier: AlertNotifier) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(notifier), host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
