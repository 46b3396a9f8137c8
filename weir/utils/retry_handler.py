"""
Retry logic for adapter calls.

Transient adapter failures (``AdapterError.transient``) are retried with
exponential backoff via tenacity; every other exception propagates on the
first attempt.
"""

from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from weir.core.exceptions import AdapterError
from weir.core.specifications import RetrySettings
from weir.utils.logging_utils import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def is_transient(error: BaseException) -> bool:
    """True for adapter errors flagged as safe to retry."""
    return isinstance(error, AdapterError) and error.transient


class RetryHandler:
    """
    Executes a callable, retrying transient adapter errors.

    Example:
        handler = RetryHandler(max_attempts=3, initial_delay=0.1)
        batch = handler.execute(source.next_batch)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryHandler":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            exponential_base=settings.exponential_base,
        )

    def execute(self, func: Callable[[], T], description: str = "call") -> T:
        """
        Run ``func`` until it succeeds or retries are exhausted.

        Args:
            func: Zero-argument callable
            description: Label used in retry log messages

        Returns:
            Whatever ``func`` returns

        Raises:
            The last exception raised by ``func``
        """

        def log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                f"Transient failure in {description} "
                f"(attempt {state.attempt_number}/{self.max_attempts}): {error}"
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                min=self.initial_delay,
                max=self.max_delay,
                exp_base=self.exponential_base,
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=log_retry,
            reraise=True,
        )
        return retrying(func)
