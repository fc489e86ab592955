"""Retry/backoff helpers for transient filesystem failures."""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

logger = py_logging.getLogger(__name__)


class RecoverableError(Exception):
    """Transient failure that can be retried."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.1
    multiplier: float = 2.0


def run_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (RecoverableError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    if policy.max_attempts < 1:
        raise ValueError(f"Invalid retry attempts: {policy.max_attempts}")

    backoff = policy.initial_backoff_seconds
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                raise
            logger.debug("Retrying after attempt=%s error=%s backoff=%.2fs", attempt, exc, backoff)
            sleep(backoff)
            backoff *= policy.multiplier
    raise RuntimeError("Retry policy exhausted without executing operation.")
