from __future__ import annotations

from contextlib import asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .alerts import parse_alert
from .errors import SkyPulseError, UnsupportedMethodError, ValidationError
from .orchestrator import AlertNotifier


TEST_NOTIFICATION_PATH = "/api/send-test-notification"
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

logger = logging.getLogger(__name__)


async def handle_test_notification(
    method: str,
    body: bytes | str | dict[str, Any] | None,
    notifier: AlertNotifier,
) -> tuple[int, dict[str, Any]]:
    try:
        if method.upper() != "POST":
            raise UnsupportedMethodError(method)
        data = _parse_body(body)
        alert = parse_alert(data)
        city = data.get("city")
        if city is not None and not isinstance(city, str):
            raise ValidationError("city must be a string", field="city")
        result = await notifier.send_test_notification(
            alert.title, alert.message, alert.severity, city
        )
    except UnsupportedMethodError as exc:
        return exc.status_code, {"success": False, "error": exc.message}
    except SkyPulseError as exc:
        logger.error("Test notification failed: %s", exc)
        return 500, {"success": False, "error": str(exc)}
    except Exception as exc:
        logger.exception("Unexpected error while sending test notification")
        return 500, {"success": False, "error": str(exc) or exc.__class__.__name__}

    return 200, {"success": True, "message": "Notification sent", "sent_to": result.sent_to}


def create_app(notifier: AlertNotifier) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await notifier.dispatcher.close()

    app = FastAPI(title="SkyPulse alert push", lifespan=lifespan)

    @app.api_route(TEST_NOTIFICATION_PATH, methods=ROUTED_METHODS)
    async def send_test_notification(request: Request) -> JSONResponse:
        body = await request.body() if request.method == "POST" else None
        status, content = await handle_test_notification(request.method, body, notifier)
        return JSONResponse(content=content, status_code=status)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def _parse_body(body: bytes | str | dict[str, Any] | None) -> dict[str, Any]:
    if isinstance(body, dict):
        return body
    if not body:
        raise ValidationError("Request body must be a JSON object")
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise ValidationError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
