"""
Bounded retry for idempotent store calls.

Only ``StoreUnavailableError`` with ``retryable`` set is retried; everything
else (not-found, invalid state, conflicting writes) propagates at once.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from homepage_cms.config import settings
from homepage_cms.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_store_call(call: Callable[[], Awaitable[T]], backoff: list[float] | None = None) -> T:
    delays = settings.store_retry_backoff if backoff is None else backoff
    attempt = 0
    while True:
        try:
            return await call()
        except StoreUnavailableError as e:
            if not e.retryable or attempt >= len(delays):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(f"Store unavailable during {e.operation}; retry {attempt}/{len(delays)} in {delay}s")
            await asyncio.sleep(delay)
