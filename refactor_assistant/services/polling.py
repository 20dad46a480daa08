"""Fixed-delay polling of long-running remote jobs.

The loop sleeps before every fetch, tolerates a bounded run of consecutive
RemoteCallErrors, and checks a per-interaction CancellationToken once per
iteration. Cancellation is cooperative: an in-flight fetch is never
interrupted, the loop simply stops before issuing the next one.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from refactor_assistant.errors import (
    PollCancelledError,
    PollExhaustedError,
    RemoteCallError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_CONSECUTIVE_ERRORS = 3


class CancellationToken:
    """One-shot cancellation flag backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, returning early once cancelled."""
        if self.cancelled:
            return
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


async def poll_until_terminal(
    fetch: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    cancel_token: CancellationToken,
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
    on_progress: Callable[[T], Any] | None = None,
) -> T:
    """Poll ``fetch`` until it returns a terminal result.

    Args:
        fetch: Coroutine function returning the current job status.
        is_terminal: Predicate deciding whether a result ends the loop.
        cancel_token: Checked after every sleep, before every fetch.
        interval: Seconds to wait before each fetch.
        max_consecutive_errors: Number of back-to-back RemoteCallErrors
            after which polling gives up. A successful fetch resets the count.
        on_progress: Called with every non-terminal result.

    Returns:
        The first terminal result.

    Raises:
        PollCancelledError: The token was set. Carries the last result seen.
        PollExhaustedError: Too many consecutive fetch failures. Chained to
            the last RemoteCallError.
    """
    consecutive_errors = 0
    last_result: T | None = None

    while True:
        await cancel_token.sleep(interval)
        if cancel_token.cancelled:
            raise PollCancelledError(last_result)

        try:
            result = await fetch()
        except RemoteCallError as e:
            consecutive_errors += 1
            logger.warning(
                "Poll attempt failed (%d/%d): %s",
                consecutive_errors,
                max_consecutive_errors,
                e,
            )
            if consecutive_errors >= max_consecutive_errors:
                raise PollExhaustedError(consecutive_errors) from e
            continue

        consecutive_errors = 0
        last_result = result
        if is_terminal(result):
            return result
        if on_progress is not None:
            on_progress(result)
