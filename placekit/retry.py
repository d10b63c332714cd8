from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from placekit.defaults import MAX_ATTEMPTS, RETRY_BACKOFF_S, TRANSIENT_STATUSES
from placekit.errors import AuthError, RetryExhausted, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryBudget:
    attempts_remaining: int
    backoff_s: float

    def spend(self) -> bool:
        self.attempts_remaining -= 1
        return self.attempts_remaining > 0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry contract shared by every canvas call.

    TransientError: sleep ``backoff_s`` and retry, ``max_attempts`` in total.
    AuthError: ask ``recover_auth`` once; on success retry once without
    spending a transient attempt. Anything else propagates untouched.
    """
    max_attempts: int = MAX_ATTEMPTS
    backoff_s: float = RETRY_BACKOFF_S
    transient_statuses: Tuple[int, ...] = TRANSIENT_STATUSES
    sleep: Callable[[float], None] = time.sleep

    def is_transient(self, status: Optional[int]) -> bool:
        return status in self.transient_statuses

    def call(
        self,
        operation: Callable[[], T],
        *,
        describe: str,
        recover_auth: Optional[Callable[[], bool]] = None,
    ) -> T:
        budget = RetryBudget(attempts_remaining=self.max_attempts, backoff_s=self.backoff_s)
        auth_recovered = False
        while True:
            try:
                return operation()
            except TransientError as exc:
                if not budget.spend():
                    logger.error("%s: giving up after %d attempts (%s)", describe, self.max_attempts, exc)
                    raise RetryExhausted(
                        f"{describe} failed after {self.max_attempts} attempts: {exc}",
                        attempts=self.max_attempts,
                        status=exc.status,
                    ) from exc
                logger.warning(
                    "%s: transient failure (attempt %d/%d): %s; retrying in %.0fs",
                    describe,
                    self.max_attempts - budget.attempts_remaining,
                    self.max_attempts,
                    exc,
                    budget.backoff_s,
                )
                self.sleep(budget.backoff_s)
            except AuthError as exc:
                if auth_recovered or recover_auth is None:
                    raise
                auth_recovered = True
                logger.warning("%s: credentials rejected (%s); refreshing", describe, exc)
                if not recover_auth():
                    raise AuthError(f"{describe}: token refresh failed, re-authentication required", exc.status) from exc
                logger.info("%s: retrying with refreshed credentials", describe)
