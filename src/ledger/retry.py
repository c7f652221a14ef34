"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.stdlib.get_logger(__name__)


def conflict_retry(
    max_attempts: int = 5,
    exceptions: tuple = (Exception,),
):
    """Retry decorator for conditional writes that lost a race.

    A lost race means another writer already succeeded, so the retry is
    immediate: the caller re-reads state on the next attempt.

    Args:
        max_attempts: Max attempts, including the first
        exceptions: Exception types that signal a lost race
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
    exceptions: tuple = (Exception,),
):
    """Generic retry decorator for transient failures.

    Args:
        max_attempts: Max retry attempts
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_from_config(config: dict, exceptions: tuple = (Exception,)):
    """Create retry decorator from config dict.

    Args:
        config: Config dict with retry section
        exceptions: Exception types to retry on

    Returns:
        Configured retry decorator
    """
    retry_config = config.get("retry", {})

    return with_retry(
        max_attempts=retry_config.get("max_attempts", 3),
        min_wait=retry_config.get("min_wait", 0.5),
        max_wait=retry_config.get("max_wait", 5.0),
        exceptions=exceptions,
    )
