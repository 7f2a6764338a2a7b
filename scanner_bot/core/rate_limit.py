"""Concurrency, timeout and retry helpers for model calls."""
import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import anyio
from google.genai import errors as genai_errors

if TYPE_CHECKING:
    from ..config import Settings

T = TypeVar("T")


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, operation_name: str, last_exception: Exception, attempts: int):
        self.operation_name = operation_name
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_exception}"
        )


class CapacityLimiter:
    """Caps the number of model interactions in flight across all tasks."""

    def __init__(self, total_tokens: int):
        self.total_tokens = total_tokens
        self._limiter = anyio.CapacityLimiter(total_tokens)

    async def __aenter__(self):
        await self._limiter.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._limiter.release()

    @property
    def available_tokens(self) -> int:
        return int(self._limiter.available_tokens)

    @property
    def borrowed_tokens(self) -> int:
        return self._limiter.borrowed_tokens


def is_transient_model_error(exc: BaseException) -> bool:
    """Server errors, rate limiting and timeouts are worth another attempt."""
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, genai_errors.ServerError):
        return True
    if isinstance(exc, genai_errors.ClientError):
        return getattr(exc, "code", None) == 429
    return False


async def with_timeout(
    awaitable: Awaitable[T],
    seconds: float | None,
    operation_name: str = "operation"
) -> T:
    """Await with an upper bound; ``None`` disables the bound."""
    if seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise TimeoutError(f"{operation_name} timed out after {seconds:.0f}s") from exc


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 10.0,
    jitter_range: float = 3.0,
    retry_if: Callable[[BaseException], bool] = is_transient_model_error,
    operation_name: str | None = None,
    logger: logging.Logger | None = None
) -> T:
    """Execute an async operation with exponential backoff retry logic.

    Args:
        operation: Async callable producing a fresh awaitable per attempt
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Base delay for exponential backoff in seconds
        max_delay: Upper bound on the backoff delay
        jitter_range: Random jitter added to each delay
        retry_if: Predicate deciding whether an exception is transient
        operation_name: Name used in log lines
        logger: Logger instance (defaults to module logger)

    Returns:
        Result of the first successful attempt

    Raises:
        RetryError: When the error is not transient or attempts are exhausted
    """
    if logger is None:
        logger = logging.getLogger(__name__)
    operation_desc = operation_name or "operation"

    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as exc:
            if not retry_if(exc):
                logger.error(
                    f"[RETRY] {operation_desc} - Non-retryable exception: {str(exc)[:150]}"
                )
                raise RetryError(operation_desc, exc, attempt) from exc

            if attempt == max_retries:
                logger.error(
                    f"[RETRY] {operation_desc} - Exhausted retries ({max_retries}): "
                    f"{str(exc)[:150]}"
                )
                raise RetryError(operation_desc, exc, attempt) from exc

            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            total_delay = delay + random.uniform(0, jitter_range)
            logger.warning(
                f"[RETRY] {operation_desc} - Attempt {attempt}/{max_retries} failed: "
                f"{str(exc)[:100]}. Retrying in {total_delay:.1f}s..."
            )
            await asyncio.sleep(total_delay)

    raise RetryError(operation_desc, RuntimeError("no attempts were made"), 0)


class RateLimitedExecutor:
    """Runs model calls under a shared capacity limit, a per-call timeout and retries."""

    def __init__(
        self,
        capacity: int,
        timeout: float | None = 120.0,
        max_retries: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 10.0,
        jitter_range: float = 3.0
    ):
        self.limiter = CapacityLimiter(capacity)
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_range = jitter_range
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str | None = None,
        retry_if: Callable[[BaseException], bool] = is_transient_model_error
    ) -> T:
        """Execute operation with capacity limiting, timeout and retry logic."""
        name = operation_name or "operation"

        async def limited_operation():
            async with self.limiter:
                return await with_timeout(operation(), self.timeout, name)

        return await retry_with_backoff(
            operation=limited_operation,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter_range=self.jitter_range,
            retry_if=retry_if,
            operation_name=name,
            logger=self._logger
        )

    async def execute_once(self, operation: Callable[[], Awaitable[T]], operation_name: str | None = None) -> T:
        """Single bounded attempt, used for polling and cleanup calls."""
        async with self.limiter:
            return await with_timeout(operation(), self.timeout, operation_name or "operation")

    @property
    def stats(self) -> dict:
        """Get current executor statistics."""
        return {
            "available_capacity": self.limiter.available_tokens,
            "borrowed_capacity": self.limiter.borrowed_tokens,
            "total_capacity": self.limiter.total_tokens
        }


def create_gemini_executor(settings: "Settings") -> RateLimitedExecutor:
    """Create the executor shared by every Gemini call in a watch session."""
    return RateLimitedExecutor(
        capacity=settings.quota_limit,
        timeout=settings.request_timeout_seconds,
        max_retries=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        jitter_range=settings.retry_jitter_range
    )
