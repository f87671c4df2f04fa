"""Retry logic with exponential backoff for HTTP price lookups."""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    """
    Configuration for retry behavior.

    Parameters
    ----------
    max_retries : int
        Maximum number of retry attempts
    base_delay : float
        Initial delay in seconds before first retry
    max_delay : float
        Maximum delay between retries
    exponential_base : float
        Base for exponential backoff calculation
    retry_on : tuple[type[BaseException], ...]
        Exception types that trigger a retry; anything else propagates at once

    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retry_on = retry_on

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt using exponential backoff.

        Parameters
        ----------
        attempt : int
            Current attempt number (0-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)


def call_with_retry(func: Callable[..., T], config: RetryConfig, *args: Any, **kwargs: Any) -> T:
    """
    Call ``func`` and retry on configured exceptions with exponential backoff.

    Parameters
    ----------
    func : Callable
        Function to call
    config : RetryConfig
        Retry configuration
    *args, **kwargs
        Forwarded to ``func``

    Returns
    -------
    T
        Result of the first successful call

    Raises
    ------
    Exception
        The last exception once all retries are exhausted

    """
    for attempt in range(config.max_retries + 1):
        try:
            return func(*args, **kwargs)
        except config.retry_on as e:
            # Don't retry on last attempt
            if attempt == config.max_retries:
                raise

            delay = config.get_delay(attempt)
            logger.debug(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                getattr(func, "__name__", "call"),
                attempt + 1,
                config.max_retries + 1,
                e,
                delay,
            )
            time.sleep(delay)

    msg = "max_retries must be non-negative"
    raise ValueError(msg)
