"""Retry with linear backoff around a :class:`~resilient_http.transport.Transport`.

Only failures that prevent a call from completing are retried: a
:class:`~resilient_http.exceptions.RequestTimeout` or a
:class:`~resilient_http.exceptions.TransportError`. A completed response
is returned as-is even when its status signals an error, so non-idempotent
requests are never replayed because of an application-level failure.

With ``max_retries = N`` at most ``N + 1`` attempts are made. After failed
attempt *n* the policy sleeps ``n * base_delay`` seconds (1 s, 2 s, 3 s,
... by default). The sleep is an ``await`` so other tasks on the event
loop keep running.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from resilient_http.exceptions import RequestTimeout, RetryExhausted, TransportError
from resilient_http.models import RequestOptions
from resilient_http.transport import Transport

RetryCallback = Callable[[int, float, Exception], None]


class RetryPolicy:
    """Re-invokes a transport on transient failure.

    Args:
        transport: The transport performing each attempt.
        max_retries: Retries allowed after the first attempt.
        timeout: Deadline in seconds applied to every attempt.
        base_delay: Backoff unit in seconds.
        on_retry: Called as ``on_retry(attempt, delay, error)`` before each
            sleep; used by the client for logging.
        sleep: Awaitable sleep function, replaceable in tests.
    """

    def __init__(
        self,
        transport: Transport,
        max_retries: int = 2,
        timeout: float = 10.0,
        base_delay: float = 1.0,
        on_retry: Optional[RetryCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self.max_retries = max_retries
        self.timeout = timeout
        self.base_delay = base_delay
        self._on_retry = on_retry
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number *attempt* (1-based)."""
        return attempt * self.base_delay

    async def execute(self, url: str, options: RequestOptions) -> httpx.Response:
        """Call the transport until it completes or the attempts run out.

        Returns:
            The first completed :class:`httpx.Response`, whatever its status.

        Raises:
            RetryExhausted: Every attempt timed out or failed at the
                transport level. ``last_error`` holds the final failure.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._transport.call(url, options, self.timeout)
            except (RequestTimeout, TransportError) as exc:
                if attempt > self.max_retries:
                    raise RetryExhausted(exc, attempts=attempt) from exc
                delay = self.delay_for(attempt)
                if self._on_retry is not None:
                    self._on_retry(attempt, delay, exc)
                await self._sleep(delay)
