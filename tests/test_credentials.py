from __future__ import annotations

import base64
import json
import threading
import time

from placekit.credentials import CredentialManager, jwt_expiry
from placekit.models import TokenPair


def _jwt(claims):
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"eyJhbGciOiJIUzI1NiJ9.{payload}.sig"


class CountingExchange:
    def __init__(self, result=None, delay_s=0.0):
        self.calls = []
        self.result = result
        self.delay_s = delay_s

    def __call__(self, refresh_token):
        self.calls.append(refresh_token)
        if self.delay_s:
            time.sleep(self.delay_s)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def test_refresh_replaces_token_pair():
    exchange = CountingExchange(TokenPair("new-access", "new-refresh"))
    manager = CredentialManager("old-access", "old-refresh", exchange)

    assert manager.refresh() is True
    assert exchange.calls == ["old-refresh"]
    assert manager.current_access_token() == "new-access"
    assert manager.current_refresh_token() == "new-refresh"
    assert manager.refresh_count == 1


def test_failed_refresh_leaves_state_untouched():
    manager = CredentialManager("access", "refresh", CountingExchange(None))

    assert manager.refresh() is False
    assert manager.current_access_token() == "access"
    assert manager.current_refresh_token() == "refresh"


def test_exchange_exception_counts_as_failure():
    manager = CredentialManager("access", "refresh", CountingExchange(ConnectionError("down")))

    assert manager.refresh() is False
    assert manager.current_access_token() == "access"


def test_stale_token_skips_second_exchange():
    exchange = CountingExchange(TokenPair("fresh", "r2"))
    manager = CredentialManager("stale", "r1", exchange)

    assert manager.refresh("stale") is True
    assert manager.refresh("stale") is True
    assert len(exchange.calls) == 1


def test_concurrent_callers_share_one_refresh():
    exchange = CountingExchange(TokenPair("fresh", "r2"), delay_s=0.05)
    manager = CredentialManager("stale", "r1", exchange)
    results = []
    start = threading.Barrier(8)

    def worker():
        start.wait()
        results.append(manager.refresh("stale"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert results == [True] * 8
    assert len(exchange.calls) == 1
    assert manager.current_access_token() == "fresh"


def test_install_keeps_refresh_token_when_not_rotated():
    manager = CredentialManager("a1", "r1", CountingExchange(None))

    manager.install("a2")

    assert manager.current_access_token() == "a2"
    assert manager.current_refresh_token() == "r1"


def test_expiry_hint_from_jwt():
    token = _jwt({"sub": "me", "exp": 2_000})
    manager = CredentialManager(token, "r", CountingExchange(None))

    assert jwt_expiry(token) == 2_000.0
    assert jwt_expiry("opaque-token") is None
    assert manager.expires_within(120, now=1_900)
    assert not manager.expires_within(120, now=1_000)
    assert not CredentialManager("opaque", "r", CountingExchange(None)).expires_within(120)
