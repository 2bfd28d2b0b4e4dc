"""Retry/backoff executor for upstream calls.

Failures are classified by HTTP status:

- 429: fixed escalating delays (5s, 10s, 20s). The remote throttles by
  wall-clock window, so waiting longer matters more than retrying sooner.
- 5xx: exponential backoff, `initial_delay * 2 ** retry` (1s, 2s, 4s).
- 404: no retry, NotFound.
- anything else: no retry.

Rate-limit and server-error retries have separate budgets, so a flapping
rate limit can't use up the retries meant for a real outage.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from errors import (
    NetworkError,
    NotFound,
    RateLimitExceeded,
    UpstreamClientError,
    UpstreamHTTPError,
    UpstreamServerError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    rate_limit_delays: tuple[float, ...] = (5.0, 10.0, 20.0)
    rate_limit_retries: int = 3
    server_error_retries: int = 3
    initial_delay: float = 1.0
    # Upper bound on the whole retry loop, None for unbounded
    deadline: float | None = None

    def rate_limit_delay(self, retry: int) -> float:
        if not self.rate_limit_delays:
            return 0.0
        return self.rate_limit_delays[min(retry, len(self.rate_limit_delays) - 1)]

    def server_error_delay(self, retry: int) -> float:
        return self.initial_delay * (2 ** retry)


# weather.gov: long rate-limit steps, three server retries
NWS_RETRY_POLICY = RetryPolicy()

# Zippopotam.us rarely throttles; a single short rate-limit wait is enough
GEOCODER_RETRY_POLICY = RetryPolicy(rate_limit_delays=(5.0,), rate_limit_retries=1)

# OpenWeatherMap free tier is metered per day, retrying a 429 only burns quota
UV_RETRY_POLICY = RetryPolicy(rate_limit_delays=(), rate_limit_retries=0, server_error_retries=1)


class RetryExecutor:
    """Runs upstream operations under a RetryPolicy."""

    def __init__(self, policy: RetryPolicy = NWS_RETRY_POLICY, sleep: Sleep = asyncio.sleep, name: str = "upstream"):
        self.policy = policy
        self.name = name
        self._sleep = sleep

    async def execute(self, operation: Operation) -> T:
        if self.policy.deadline is None:
            return await self._run(operation)
        try:
            return await asyncio.wait_for(self._run(operation), timeout=self.policy.deadline)
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"{self.name}: gave up after {self.policy.deadline}s including retries"
            ) from e

    async def _run(self, operation: Operation) -> T:
        rate_limit_retries = 0
        server_retries = 0
        while True:
            try:
                return await operation()
            except UpstreamHTTPError as e:
                status = e.status or 0

                if status == 429:
                    if rate_limit_retries < self.policy.rate_limit_retries:
                        delay = self.policy.rate_limit_delay(rate_limit_retries)
                        rate_limit_retries += 1
                        logger.warning(
                            "%s: rate limited, retrying in %.1fs (attempt %d/%d)",
                            self.name, delay, rate_limit_retries, self.policy.rate_limit_retries,
                        )
                        await self._sleep(delay)
                        continue
                    raise RateLimitExceeded(
                        f"{self.name}: rate limit exceeded after {rate_limit_retries} retries",
                        status=status,
                        body=e.body,
                    ) from e

                if 500 <= status < 600:
                    if server_retries < self.policy.server_error_retries:
                        delay = self.policy.server_error_delay(server_retries)
                        server_retries += 1
                        logger.warning(
                            "%s: server error %d, retrying in %.1fs (attempt %d/%d)",
                            self.name, status, delay, server_retries, self.policy.server_error_retries,
                        )
                        await self._sleep(delay)
                        continue
                    raise UpstreamServerError(
                        f"{self.name}: server error {status} after {server_retries} retries",
                        status=status,
                        body=e.body,
                    ) from e

                if status == 404:
                    raise NotFound(f"{self.name}: resource not found") from e

                raise UpstreamClientError(
                    f"{self.name}: HTTP error {status}", status=status, body=e.body
                ) from e
