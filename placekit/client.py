from __future__ import annotations

import datetime
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Optional

import numpy as np
import requests

from placekit.credentials import CredentialManager
from placekit.defaults import BATCH_WINDOW_S, PROACTIVE_REFRESH_MARGIN_S, REQUEST_TIMEOUT_S
from placekit.errors import AuthError, CooldownError, FatalError, TransientError
from placekit.models import CanvasSnapshot, PaletteColor, Palette, TokenPair, default_palette
from placekit.retry import RetryPolicy

logger = logging.getLogger(__name__)

AUTH_STATUSES = (401, 426)
USER_AGENT = "placekit/0.1"

# Dropped or garbled mid-transfer; anything else from requests is fatal
TRANSIENT_SEND_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


def _now_utc() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _parse_timestamp(value: str) -> Optional[datetime.datetime]:
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def cooldown_wait_s(timers: Iterable[str], now: datetime.datetime) -> float:
    """Seconds until the earliest announced timer, plus one second of slack."""
    parsed = [ts for ts in (_parse_timestamp(t) for t in timers) if ts is not None]
    if not parsed:
        return BATCH_WINDOW_S
    earliest = min(parsed)
    if earliest <= now:
        return 1.0
    return float(int((earliest - now).total_seconds()) + 1)


def _json_body(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _hex_from_rgb(entry: Dict[str, Any]) -> str:
    return "#{:02X}{:02X}{:02X}".format(int(entry["red"]), int(entry["green"]), int(entry["blue"]))


def parse_palette(colors: Any) -> Palette:
    if not colors:
        return default_palette()
    palette: Dict[int, PaletteColor] = {}
    try:
        for entry in colors:
            cid = int(entry["id"])
            palette[cid] = PaletteColor(color_id=cid, name=str(entry.get("name", cid)), hex=_hex_from_rgb(entry))
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise FatalError(f"Malformed color table in board response: {exc!r}") from exc
    return MappingProxyType(palette)


def parse_board(payload: Dict[str, Any], fetched_at: datetime.datetime) -> CanvasSnapshot:
    """
    Turn the authority's board payload into a snapshot.

    The board is column-major: ``board[x][y]`` holds the pixel at (x, y).
    """
    columns = payload.get("board")
    if not isinstance(columns, list) or not columns:
        raise FatalError("Board response carries no board")
    try:
        grid = np.array([[int(px["color_id"]) for px in column] for column in columns], dtype=np.int64)
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise FatalError(f"Malformed board response: {exc}") from exc
    if grid.ndim != 2:
        raise FatalError("Board response is not rectangular")
    if grid.size and (grid.min() < 0 or grid.max() > 255):
        raise FatalError("Board response has color ids outside 0..255")
    return CanvasSnapshot(cells=grid.T, fetched_at=fetched_at, palette=parse_palette(payload.get("colors")))


class TokenEndpoint:
    """Exchanges a refresh token for a new token pair."""

    def __init__(self, session: requests.Session, base_url: str, timeout_s: float = REQUEST_TIMEOUT_S) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def __call__(self, refresh_token: str) -> Optional[TokenPair]:
        response = self.session.post(
            f"{self.base_url}/api/refresh",
            headers={"Cookie": f"refresh={refresh_token}", "User-Agent": USER_AGENT},
            timeout=self.timeout_s,
        )
        if not response.ok:
            logger.error("Token endpoint answered %s", response.status_code)
            return None
        body = _json_body(response)
        token = response.cookies.get("token") or body.get("token")
        if not token:
            logger.error("Token endpoint returned no access token")
            return None
        refresh = response.cookies.get("refresh") or body.get("refresh") or refresh_token
        return TokenPair(access_token=token, refresh_token=refresh)


class CanvasClient:
    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        credentials: CredentialManager,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        timeout_s: float = REQUEST_TIMEOUT_S,
        clock: Callable[[], datetime.datetime] = _now_utc,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_s = timeout_s
        self.clock = clock

    # public operations

    def fetch_snapshot(self) -> CanvasSnapshot:
        return self._with_retry(self._fetch_once, "fetch board")

    def write_pixel(self, x: int, y: int, color_id: int) -> bool:
        return self._with_retry(lambda: self._write_once(x, y, color_id), f"write ({x}, {y})={color_id}")

    def ensure_fresh_credentials(self, margin_s: float = PROACTIVE_REFRESH_MARGIN_S) -> None:
        if not self.credentials.expires_within(margin_s, now=self.clock().timestamp()):
            return
        logger.info("Access token expires within %.0fs; refreshing ahead of time", margin_s)
        if not self.credentials.refresh(self.credentials.current_access_token()):
            logger.warning("Proactive refresh failed; continuing with current token")

    # internals

    def _with_retry(self, operation: Callable[[], Any], describe: str) -> Any:
        used_token: Dict[str, str] = {}

        def attempt() -> Any:
            used_token["token"] = self.credentials.current_access_token()
            return operation()

        return self.retry_policy.call(
            attempt,
            describe=describe,
            recover_auth=lambda: self.credentials.refresh(used_token.get("token")),
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Cookie": f"token={self.credentials.current_access_token()}; refresh={self.credentials.current_refresh_token()}",
            "Origin": self.base_url,
            "User-Agent": USER_AGENT,
        }

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.request(method, url, headers=self._headers(), timeout=self.timeout_s, **kwargs)
        except TRANSIENT_SEND_ERRORS as exc:
            raise TransientError(f"{method} {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise FatalError(f"{method} {url}: {exc}") from exc

    def _check(self, response: requests.Response, describe: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if self.retry_policy.is_transient(status):
            raise TransientError(f"{describe}: HTTP {status}", status)
        if status in AUTH_STATUSES:
            self._absorb_rotated_tokens(response)
            raise AuthError(f"{describe}: HTTP {status}", status)
        body = _json_body(response)
        if body.get("message") == "Too early":
            wait_s = cooldown_wait_s(body.get("timers") or [], self.clock())
            raise CooldownError(f"{describe}: too early, next pixel in {wait_s:.0f}s", wait_s, status)
        raise FatalError(f"{describe}: HTTP {status} {response.text[:200]}", status)

    def _absorb_rotated_tokens(self, response: requests.Response) -> None:
        token = response.cookies.get("token")
        if token:
            self.credentials.install(token, response.cookies.get("refresh"))

    def _fetch_once(self) -> CanvasSnapshot:
        url = f"{self.base_url}/api/get"
        logger.debug("Requesting board from %s", url)
        response = self._send("GET", url, params={"type": "board"})
        self._check(response, "fetch board")
        snapshot = parse_board(_json_body(response), self.clock())
        logger.info("Fetched %dx%d board", snapshot.width, snapshot.height)
        return snapshot

    def _write_once(self, x: int, y: int, color_id: int) -> bool:
        logger.debug("Placing pixel at (%d, %d) with color id %d", x, y, color_id)
        response = self._send(
            "POST",
            f"{self.base_url}/api/set",
            json={"x": x, "y": y, "color": str(color_id)},
        )
        self._check(response, f"write ({x}, {y})")
        logger.info("Placed pixel at (%d, %d) with color id %d", x, y, color_id)
        return True


