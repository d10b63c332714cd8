from __future__ import annotations

from typing import Optional


class PlaceKitError(RuntimeError):
    pass


class PatternFormatError(PlaceKitError):
    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Invalid pattern file {path}: {reason}")
        self.path = path
        self.reason = reason


class CanvasError(PlaceKitError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class TransientError(CanvasError):
    """502 or a dropped connection; worth retrying after a backoff."""


class AuthError(CanvasError):
    """Rejected credentials (401/426)."""


class FatalError(CanvasError):
    """Any other non-2xx response. Never retried."""


class CooldownError(FatalError):
    """The authority refused a write because the account's quota is spent."""

    def __init__(self, message: str, wait_s: float, status: Optional[int] = None) -> None:
        super().__init__(message, status)
        self.wait_s = wait_s


class RetryExhausted(CanvasError):
    def __init__(self, message: str, attempts: int, status: Optional[int] = None) -> None:
        super().__init__(message, status)
        self.attempts = attempts


class OutOfBoundsWarning(UserWarning):
    def __init__(self, x: int, y: int, pattern: str = "") -> None:
        super().__init__(f"Pattern {pattern or '?'} pixel ({x}, {y}) is outside the canvas")
        self.x = x
        self.y = y
        self.pattern = pattern
