"""Retrying of operations that fail because the database is contended."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 5
_BASE_DELAY_MS = 50


class DatabaseFailed(Exception):
    """The database could not complete an operation."""


def _backoff_ms(retries: int) -> int:
    low = 2**retries * _BASE_DELAY_MS
    high = 2 ** (retries + 1) * _BASE_DELAY_MS
    return random.randrange(low, high)


def db_retry(
    action: Callable[[], T],
    sleep: Callable[[float], object] = time.sleep,
) -> T:
    """Call ``action``, retrying with randomized exponential backoff on DatabaseFailed.

    Other exceptions propagate at once. After the sixth consecutive database
    failure the last DatabaseFailed is raised.
    """
    retries = 0
    while True:
        retries += 1
        try:
            return action()
        except DatabaseFailed as err:
            if retries > MAX_RETRIES:
                log.warning("DB retried many times now: %s", err)
                raise
            delay_ms = _backoff_ms(retries)
            log.warning(
                "[retries=%d] DB contention (%s); sleeping for %d ms",
                retries,
                err,
                delay_ms,
            )
            sleep(delay_ms / 1000.0)