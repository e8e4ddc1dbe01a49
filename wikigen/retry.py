from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import Generic, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    value: T | None
    error: Exception | None
    attempts: int

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retries(self) -> int:
        return self.attempts - 1


def run_with_retries(
    fn: Callable[[], T],
    *,
    max_retries: int,
    backoff_seconds: float,
    on_attempt_failure: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult[T]:
    last_error: Exception | None = None
    attempt = 0

    for attempt in range(1, max_retries + 2):
        try:
            return RetryResult(value=fn(), error=None, attempts=attempt)
        except Exception as exc:
            last_error = exc
            if on_attempt_failure:
                on_attempt_failure(attempt, exc)

            if attempt > max_retries:
                break
            # Linear backoff: the nth retry waits n * backoff.
            sleep(backoff_seconds * attempt)

    return RetryResult(value=None, error=last_error, attempts=attempt)
