from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
from typing import Any

from .errors import ValidationError


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Any) -> Severity:
        if value is None or value == "":
            return cls.MEDIUM
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            raise ValidationError("severity must be a string", field="severity")
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(item.value for item in cls)
            raise ValidationError(f"severity must be one of: {allowed}", field="severity")


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    severity: Severity = Severity.MEDIUM


def parse_alert(raw: Any) -> Alert:
    if not isinstance(raw, dict):
        raise ValidationError("alert must be a JSON object")
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required", field="title")
    message = raw.get("message", "")
    if message is None:
        message = ""
    if not isinstance(message, str):
        raise ValidationError("message must be a string", field="message")
    return Alert(title=title, message=message, severity=Severity.parse(raw.get("severity")))


def load_alerts(path: str) -> list[Alert]:
    with open(path, "r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if isinstance(raw, dict):
        raw = raw.get("alerts", [])
    if not isinstance(raw, list):
        raise ValidationError("alerts file must contain a list of alerts")
    return [parse_alert(entry) for entry in raw]
