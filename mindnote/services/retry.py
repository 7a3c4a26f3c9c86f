"""
RetryPolicy - Decides whether a classified failure is retried.

The decision is a value (Retry or Fail) rather than control flow, so the
call executor only sleeps and loops on Retry and raises on Fail.
"""

from dataclasses import dataclass

from mindnote.services.errors import ErrorKind, ServiceError

RETRYABLE_KINDS = frozenset({ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.RATE_LIMITED})


@dataclass(frozen=True)
class Retry:
    """Resubmit the call after `delay` seconds."""

    delay: float


@dataclass(frozen=True)
class Fail:
    """Give up and surface `error` to the caller."""

    error: ServiceError


RetryDecision = Retry | Fail


@dataclass
class RetryPolicy:
    """
    Retry transient failures: network errors, timeouts, 5xx and 429.

    Backoff is a fixed `delay` unless `backoff_factor` is above 1, in which
    case the n-th retry waits delay * backoff_factor ** (n - 1), capped at
    `max_delay`.
    """

    delay: float = 1.0
    backoff_factor: float = 1.0
    max_delay: float | None = None

    @staticmethod
    def is_retryable(error: ServiceError) -> bool:
        """Check if a classified error is transient."""
        if error.kind in RETRYABLE_KINDS:
            return True
        status = error.status_code
        return status is not None and (status == 429 or 500 <= status < 600)

    def decide(
        self,
        error: ServiceError,
        remaining: int,
        attempt: int = 1,
        delay: float | None = None,
    ) -> RetryDecision:
        """
        Decide the next step after a failed attempt.

        Args:
            error: Classified error of the failed attempt
            remaining: Retry credits left before this decision
            attempt: 1-based number of the attempt that failed
            delay: Per-call override of the base delay

        Returns:
            Retry with the backoff delay, or Fail carrying `error`
        """
        if remaining <= 0 or not self.is_retryable(error):
            return Fail(error)
        return Retry(self.backoff(attempt, delay))

    def backoff(self, attempt: int, delay: float | None = None) -> float:
        base = self.delay if delay is None else delay
        wait = base * self.backoff_factor ** max(attempt - 1, 0)
        if self.max_delay is not None:
            wait = min(wait, self.max_delay)
        return wait
