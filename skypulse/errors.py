from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .results import DispatchResult


class SkyPulseError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DeliveryError(SkyPulseError):
    """Provider rejected a message, or the network failed while sending it."""

    def __init__(
        self,
        target: str,
        detail: str,
        result: DispatchResult | None = None,
    ) -> None:
        super().__init__(f"Delivery to {target} failed: {detail}")
        self.target = target
        self.detail = detail
        self.result = result


class AuthError(SkyPulseError):
    pass


class ValidationError(SkyPulseError):
    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class UnsupportedMethodError(SkyPulseError):
    status_code = 405

    def __init__(self, method: str) -> None:
        super().__init__("Method not allowed")
        self.method = method
