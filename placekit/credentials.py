from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from placekit.models import TokenPair

logger = logging.getLogger(__name__)

TokenExchange = Callable[[str], Optional[TokenPair]]


@dataclass(frozen=True)
class CredentialState:
    access_token: str
    refresh_token: str
    expires_hint: Optional[float] = None


def jwt_expiry(token: str) -> Optional[float]:
    """Return the ``exp`` claim of a JWT, or None when the token is opaque."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    return float(exp) if isinstance(exp, (int, float)) else None


class CredentialManager:
    """
    Single holder of the access/refresh token pair.

    Readers get the current immutable state without locking. ``refresh`` and
    ``install`` replace the state under one lock, so at most one refresh is
    in flight and callers queued behind it reuse its result.
    """

    def __init__(self, access_token: str, refresh_token: str, exchange: TokenExchange) -> None:
        self._state = CredentialState(access_token, refresh_token, jwt_expiry(access_token))
        self._exchange = exchange
        self._lock = threading.Lock()
        self.refresh_count = 0

    def current_access_token(self) -> str:
        return self._state.access_token

    def current_refresh_token(self) -> str:
        return self._state.refresh_token

    def expires_within(self, seconds: float, now: Optional[float] = None) -> bool:
        hint = self._state.expires_hint
        if hint is None:
            return False
        now = time.time() if now is None else now
        return hint - now <= seconds

    def install(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        with self._lock:
            self._state = CredentialState(
                access_token,
                refresh_token or self._state.refresh_token,
                jwt_expiry(access_token),
            )
        logger.info("Installed rotated credentials from the canvas authority")

    def refresh(self, stale_token: Optional[str] = None) -> bool:
        with self._lock:
            if stale_token is not None and self._state.access_token != stale_token:
                logger.debug("Access token already refreshed by another caller")
                return True
            held = self._state
            logger.info("Refreshing access token")
            try:
                pair = self._exchange(held.refresh_token)
            except Exception as exc:  # noqa: BLE001
                logger.error("Token refresh failed: %s", exc)
                return False
            if pair is None:
                logger.error("Refresh token was rejected; manual re-authentication required")
                return False
            self._state = CredentialState(
                pair.access_token,
                pair.refresh_token or held.refresh_token,
                jwt_expiry(pair.access_token),
            )
            self.refresh_count += 1
        logger.info("Access token refreshed")
        return True
