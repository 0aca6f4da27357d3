"""Rate-limited gateway for external AI APIs.

One gateway per external API: calls run strictly one at a time, with a fixed
gap after each completes, and quota (429-class) errors are retried with
exponential backoff inside the caller's slot.
"""

import asyncio
import functools
import time
from collections.abc import Awaitable, Callable
from typing import Final, ParamSpec, TypeVar

from taste_to_lead.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_MAX_RETRIES: Final = 3
DEFAULT_BASE_DELAY: Final = 5.0  # seconds: 5, 10, 20

_QUOTA_MARKERS: Final = ("429", "quota", "resource exhausted", "resource_exhausted")


def is_quota_error(exc: BaseException) -> bool:
    """Whether an exception signals a rate limit or exhausted quota."""
    for attr in ("status_code", "code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    message = str(exc).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
) -> T:
    """Await ``call()``, retrying quota errors with exponential backoff.

    Any other exception propagates immediately. After ``max_retries`` retries
    the last quota error propagates.
    """
    attempt = 0
    while True:
        try:
            return await call()
        except Exception as e:
            if not is_quota_error(e) or attempt >= max_retries:
                raise
            delay = base_delay * (2**attempt)
            attempt += 1
            logger.warning(
                "quota_error_retrying",
                attempt=attempt,
                max_retries=max_retries,
                delay_seconds=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)


class ApiQueue:
    """Run tasks one at a time, keeping a fixed gap after each one completes.

    The gap applies whether the task succeeded or failed. The caller gets its
    result as soon as its own task finishes; the next caller waits out the gap.
    """

    def __init__(self, delay_seconds: float = 0.5, *, name: str = "api") -> None:
        self._delay = delay_seconds
        self._name = name
        self._lock = asyncio.Lock()
        self._next_slot_at = 0.0

    @property
    def name(self) -> str:
        return self._name

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            wait = self._next_slot_at - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            try:
                return await task()
            finally:
                self._next_slot_at = time.monotonic() + self._delay


class ApiGateway:
    """Serialized queue plus quota backoff for one external API."""

    def __init__(
        self,
        name: str,
        *,
        delay_seconds: float = 0.5,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
    ) -> None:
        self._queue = ApiQueue(delay_seconds, name=name)
        self._max_retries = max_retries
        self._base_delay = base_delay

    @property
    def name(self) -> str:
        return self._queue.name

    async def call(self, fn: Callable[P, Awaitable[T]], *args: P.args, **kwargs: P.kwargs) -> T:
        """Queue a call to the external API and wait for its result."""
        bound = functools.partial(fn, *args, **kwargs)
        logger.debug("gateway_call_queued", gateway=self.name)
        return await self._queue.run(
            functools.partial(
                with_retry, bound, max_retries=self._max_retries, base_delay=self._base_delay
            )
        )
