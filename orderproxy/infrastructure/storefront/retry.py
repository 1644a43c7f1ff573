"""
Retry logic for storefront API calls.
Retries transient failures (network errors, 5xx) with exponential backoff;
client errors are raised immediately.
"""

import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

import anyio
import httpx

from ...domain.exceptions import UpstreamError

T = TypeVar("T")


class TransientUpstreamError(UpstreamError):
    """A 5xx answer worth retrying."""

    pass


class RetryHandler:
    """Handles retry logic with exponential backoff for transient failures."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        jitter: float = 1.0,
    ):
        """
        Initialize retry handler.

        Args:
            max_attempts: Total attempts, the first call included
            base_delay: Base delay in seconds for exponential backoff
            jitter: Random jitter to add to delays (0-jitter seconds)
        """
        self.max_attempts = max_attempts
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )

        self.base_delay = base_delay
        self.jitter = jitter

    async def execute_with_retry(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Execute a function with exponential backoff retry logic.

        Args:
            func: The async function to execute
            *args: Positional arguments to pass to the function
            **kwargs: Keyword arguments to pass to the function

        Returns:
            The result from the function

        Raises:
            The last exception if all attempts fail
        """
        attempt = 1
        while True:
            try:
                return await func(*args, **kwargs)
            except (
                TransientUpstreamError,
                httpx.ConnectError,
                httpx.TimeoutException,
                httpx.NetworkError,
            ) as e:
                if attempt >= self.max_attempts:
                    raise e
                delay = self._calculate_delay(attempt)
                logging.debug(
                    f"Transient error, retrying in {delay:.2f}s "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                await anyio.sleep(delay)
                attempt += 1

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate exponential backoff delay with jitter.

        Args:
            attempt: Attempt that just failed (1-based)

        Returns:
            Delay in seconds
        """
        return self.base_delay * (2 ** (attempt - 1)) + random.uniform(0, self.jitter)
