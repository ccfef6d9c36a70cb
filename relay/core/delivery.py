"""
Delivery Executor

Sends a rendered payload to the external API described by a routing rule,
with a short local retry ladder before handing failures back to the
broker.

Retry policy:
- Transport errors (connection refused, timeout, DNS): retry
- 2xx: success, stop
- 400, 401, 403, 404: terminal client error, stop without retrying
- Anything else (5xx, 429, other 4xx): retry
- After the last attempt the most recent error is raised
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger

from relay.models.event import Event
from relay.models.routing import RoutingRule
from relay.utils.metrics import metrics
from relay.utils.observability import log_delivery_outcome

TERMINAL_STATUS_CODES = frozenset({400, 401, 403, 404})

Sleep = Callable[[float], Awaitable[None]]


class DeliveryError(Exception):
    """Delivery failed in a way another attempt may fix."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TerminalDeliveryError(DeliveryError):
    """The external API rejected the request; retrying will not help."""
    pass


@dataclass
class DeliveryResult:
    """Outcome of a successful delivery."""
    status_code: int
    attempts: int
    duration_ms: float


def backoff_delay(attempt_index: int, base_seconds: float = 0.1) -> float:
    """
    Seconds to wait before a zero-based attempt index.

    ``2 ** attempt_index * base_seconds``, so with the default base the
    second and third attempts wait 0.2s and 0.4s.
    """
    return (2 ** attempt_index) * base_seconds


def build_client(timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    HTTP client for outbound notifications.

    httpx's default request headers (Accept, Accept-Encoding, Connection,
    User-Agent) are removed so a request carries only the rule's headers
    plus Host and Content-Length.

    Args:
        timeout: Per-request timeout in seconds
        transport: Optional transport override

    Returns:
        Client with no default headers
    """
    client = httpx.AsyncClient(timeout=timeout, transport=transport)
    client.headers.clear()
    return client


class DeliveryExecutor:
    """
    Issues outbound HTTP requests for rendered notifications.

    Safe to share across concurrent handler invocations: the only shared
    state is the httpx client, which supports concurrent requests.

    Usage:
        async with build_client(timeout=10.0) as client:
            executor = DeliveryExecutor(client)
            await executor.deliver(rule, body, event)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_attempts: int = 3,
        backoff_base_seconds: float = 0.1,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize delivery executor.

        Args:
            client: Shared HTTP client, carrying the per-request timeout
            max_attempts: Total attempts per delivery, including the first
            backoff_base_seconds: Base of the exponential backoff
            sleep: Coroutine used to wait between attempts
        """
        self._client = client
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._sleep = sleep

    async def deliver(self, rule: RoutingRule, body: bytes, event: Event) -> DeliveryResult:
        """
        Deliver a rendered payload.

        Args:
            rule: Routing rule supplying method, URL and headers
            body: Rendered request payload
            event: Source event (for logging)

        Returns:
            Result of the successful attempt

        Raises:
            TerminalDeliveryError: On a terminal client error status
            DeliveryError: When every attempt failed; carries the last error
        """
        started = time.perf_counter()
        last_error: Optional[DeliveryError] = None

        for attempt in range(self._max_attempts):
            if attempt > 0:
                delay = backoff_delay(attempt, self._backoff_base)
                logger.bind(event_id=event.id, url=rule.url, error=str(last_error)).warning(
                    f"Local retry {attempt + 1}/{self._max_attempts} for event {event.id} in {delay:.3f}s"
                )
                await self._sleep(delay)

            metrics.delivery_attempts.inc(event_type=rule.event_type)

            try:
                response = await self._client.request(
                    rule.method,
                    rule.url,
                    headers=rule.headers,
                    content=body,
                )
            except httpx.TransportError as e:
                last_error = DeliveryError(f"request network error: {e!r}")
                continue

            if 200 <= response.status_code < 300:
                duration_ms = (time.perf_counter() - started) * 1000
                log_delivery_outcome(
                    event_id=event.id,
                    event_type=rule.event_type,
                    url=rule.url,
                    attempts=attempt + 1,
                    duration_ms=duration_ms,
                    status_code=response.status_code,
                )
                return DeliveryResult(
                    status_code=response.status_code,
                    attempts=attempt + 1,
                    duration_ms=duration_ms,
                )

            if response.status_code in TERMINAL_STATUS_CODES:
                error = TerminalDeliveryError(
                    f"request failed with client error status {response.status_code}: {response.text}",
                    status_code=response.status_code,
                    body=response.text,
                )
                self._log_failure(rule, event, attempt + 1, started, error)
                raise error

            last_error = DeliveryError(
                f"request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        if last_error is None:
            last_error = DeliveryError("no delivery attempts configured")
        self._log_failure(rule, event, self._max_attempts, started, last_error)
        raise last_error

    def _log_failure(
        self,
        rule: RoutingRule,
        event: Event,
        attempts: int,
        started: float,
        error: DeliveryError,
    ) -> None:
        log_delivery_outcome(
            event_id=event.id,
            event_type=rule.event_type,
            url=rule.url,
            attempts=attempts,
            duration_ms=(time.perf_counter() - started) * 1000,
            status_code=error.status_code,
            error=str(error),
            terminal=isinstance(error, TerminalDeliveryError),
        )
