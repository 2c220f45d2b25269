from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .alerts import Alert


@dataclass
class DeliveryOutcome:
    target: str
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class DispatchResult:
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @property
    def sent_to(self) -> list[str]:
        return [outcome.target for outcome in self.outcomes if outcome.success]

    @property
    def failed(self) -> list[DeliveryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def ok(self) -> bool:
        return bool(self.outcomes) and not self.failed


@dataclass
class AlertReport:
    alert: Alert
    status: str
    result: DispatchResult | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.alert.title,
            "severity": self.alert.severity.value,
            "status": self.status,
            "sent_to": self.result.sent_to if self.result else [],
            "error": self.error,
        }


@dataclass
class BatchReport:
    reports: list[AlertReport] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for report in self.reports if report.status == status)

    @property
    def sent(self) -> int:
        return self._count("sent")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def failed(self) -> int:
        return self._count("failed")
