"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.stdlib.get_logger(__name__)


def llm_retry(
    max_attempts: int = 3,
    min_wait: float = 2.0,
    max_wait: float = 30.0,
    exceptions: tuple = (Exception,),
) -> AsyncRetrying:
    """Async retry controller for LLM API calls.

    Uses longer max_wait for rate limiting scenarios. Use as::

        async for attempt in llm_retry(exceptions=(LLMRateLimitError,)):
            with attempt:
                ...
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_from_config(retry_config, exceptions: tuple = (Exception,)) -> AsyncRetrying:
    """Build the LLM retry controller from a RetryConfig."""
    return llm_retry(
        max_attempts=retry_config.max_attempts,
        min_wait=retry_config.min_wait,
        max_wait=retry_config.llm_max_wait,
        exceptions=exceptions,
    )
