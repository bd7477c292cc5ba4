"""
Fixed-delay retry engine for polling eventually consistent services.

Wraps tenacity so every provisioner shares the same semantics: at most
``max_attempts`` calls, a constant delay between them, a classifier that
decides which errors are worth another attempt, and a RetryExhausted
error carrying the last failure when the budget runs out.
"""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import structlog
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from agent_blueprints.config import ProvisionerSettings
from agent_blueprints.errors import ConfigurationError, RetryExhausted, TransientServiceState

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Default classifier: only TransientServiceState is retried."""
    return isinstance(error, TransientServiceState)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and fixed delay for one kind of remote operation."""

    max_attempts: int
    delay_seconds: float
    is_retryable: Callable[[BaseException], bool] = is_transient

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("Retry policy needs at least one attempt")
        if self.delay_seconds < 0:
            raise ConfigurationError("Retry delay must not be negative")

    @property
    def max_wait_seconds(self) -> float:
        """Total time spent sleeping when every attempt fails."""
        return (self.max_attempts - 1) * self.delay_seconds

    @classmethod
    def for_index(cls, settings: ProvisionerSettings) -> "RetryPolicy":
        return cls(settings.index_max_attempts, settings.index_retry_delay_seconds)

    @classmethod
    def for_sync(cls, settings: ProvisionerSettings) -> "RetryPolicy":
        return cls(settings.sync_max_attempts, settings.sync_retry_delay_seconds)


def _log_retry(description: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Operation not ready, retrying",
            operation=description,
            attempt=retry_state.attempt_number,
            max_attempts=policy.max_attempts,
            delay_seconds=policy.delay_seconds,
            elapsed_seconds=round(retry_state.seconds_since_start or 0.0, 2),
            error=str(error),
        )

    return before_sleep


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    description: str = "operation",
    resource: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run an operation until it succeeds, fails fatally or exhausts the policy.

    Args:
        operation: Zero-argument callable performing one attempt
        policy: Attempt budget, delay and retry classifier
        description: Human readable name used in logs and errors
        resource: Logical resource name attached to RetryExhausted
        sleep: Sleep function, injectable for tests

    Returns:
        The operation's result from the first successful attempt

    Raises:
        RetryExhausted: Every attempt failed with a retryable error
    """
    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.delay_seconds),
        retry=retry_if_exception(policy.is_retryable),
        before_sleep=_log_retry(description, policy),
        sleep=sleep,
    )
    try:
        return retrying(operation)
    except RetryError as e:
        last_attempt = e.last_attempt
        last_error = last_attempt.exception()
        logger.error(
            "Retry budget exhausted",
            operation=description,
            attempts=last_attempt.attempt_number,
            error=str(last_error),
        )
        raise RetryExhausted(
            description,
            attempts=last_attempt.attempt_number,
            last_error=last_error,
            resource=resource,
        ) from last_error
