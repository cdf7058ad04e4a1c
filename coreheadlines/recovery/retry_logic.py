"""
CoreHeadlines Retry Logic
========================

One parameterized retry helper shared by feed fetching, the unprocessed-item
retry of the publication tracker, and digest delivery. A RetryPolicy names the
attempt budget, the backoff curve and which exceptions are worth retrying.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..utils.logging import get_logger_for_component


T = TypeVar('T')


class RetryStrategy(Enum):
    """Backoff curves between attempts."""
    NONE = "none"                           # Retry immediately
    FIXED_DELAY = "fixed_delay"             # Fixed interval between retries
    EXPONENTIAL_BACKOFF = "exponential"     # base * 2^(attempt-1)
    LINEAR_BACKOFF = "linear"               # base * attempt


def _retry_everything(exc: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF
    base_delay: float = 0.5
    max_delay: float = 60.0
    retry_on: Callable[[BaseException], bool] = field(default=_retry_everything)

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        if self.strategy == RetryStrategy.NONE:
            delay = 0.0
        elif self.strategy == RetryStrategy.FIXED_DELAY:
            delay = self.base_delay
        elif self.strategy == RetryStrategy.LINEAR_BACKOFF:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)


class RetryManager:
    """Runs a callable under a RetryPolicy."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger_for_component('retry_manager')

    async def retry_async(
        self,
        func: Callable[..., Any],
        *args,
        policy: Optional[RetryPolicy] = None,
        operation: Optional[str] = None,
        logger=None,
        **kwargs,
    ) -> Any:
        """
        Retry a function with the configured strategy.

        Args:
            func: Async (or plain) callable to run
            *args: Function arguments
            policy: Override the manager's default policy
            operation: Name used in log messages (defaults to the function name)
            logger: Logger or adapter carrying caller context
            **kwargs: Function keyword arguments

        Returns:
            Function result if successful

        Raises:
            The last exception once attempts are exhausted, or the first
            exception the policy does not consider retryable
        """
        retry_policy = policy or self.policy
        name = operation or getattr(func, '__name__', 'operation')
        log = logger or self.logger

        attempt = 1
        while True:
            try:
                if inspect.iscoroutinefunction(func):
                    result = await func(*args, **kwargs)
                else:
                    result = func(*args, **kwargs)
                    if inspect.isawaitable(result):
                        result = await result

                if attempt > 1:
                    log.info(f"Retry successful for {name} on attempt {attempt}")
                return result

            except Exception as e:
                if not retry_policy.retry_on(e):
                    log.debug(f"Not retrying {name}: {e}")
                    raise

                if attempt >= retry_policy.max_attempts:
                    log.warning(f"All {retry_policy.max_attempts} attempts failed for {name}: {e}")
                    raise

                delay = retry_policy.delay_for(attempt)
                log.warning(
                    f"Attempt {attempt} failed for {name}: {e}. "
                    f"Retrying in {delay:.2f}s (attempt {attempt + 1}/{retry_policy.max_attempts})"
                )
                if delay > 0:
                    await self._sleep(delay)
                attempt += 1
