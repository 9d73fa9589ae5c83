"""Exponential-backoff retry engine.

Every remote call in a run goes through :func:`execute`, which never raises for
an operation failure and instead returns a :data:`RetryOutcome`. Callers that
want exception semantics use :func:`execute_or_raise`, which re-raises the last
failure.

Schedule: attempt 1 runs immediately. Before attempt ``k`` (k >= 2) the engine
waits ``initial_delay * backoff_multiplier ** (k - 2)`` seconds. A failure
classified as permanent stops the loop at once. A transient failure on attempt
``max_retries + 1`` ends it as exhausted.
A transient error that carries a positive ``retry_after`` (seconds) stretches
that wait to at least the requested time.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from loguru import logger

from skycast.retry.classifier import ErrorClass, classify_error

T = TypeVar("T")

Operation = Callable[[], Union[Awaitable[T], T]]
RetryObserver = Callable[[int, BaseException, float], None]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry schedule for one call site.

    Delays are in seconds.
    """
    max_retries: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    classify: Callable[[BaseException], ErrorClass] = field(default=classify_error, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the 1-based ``attempt``; attempt 1 never waits."""
        if attempt <= 1:
            return 0.0
        return self.initial_delay * self.backoff_multiplier ** (attempt - 2)

    def schedule(self) -> list[float]:
        """All delays this policy can wait, in order (one per retry)."""
        return [self.delay_before(k) for k in range(2, self.max_attempts + 1)]

    def with_classifier(self, classify: Callable[[BaseException], ErrorClass]) -> "RetryPolicy":
        return replace(self, classify=classify)


class _Outcome:
    ok: bool = False

    def unwrap(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Succeeded(_Outcome, Generic[T]):
    """The operation returned ``value`` on attempt number ``attempts``."""
    value: T
    attempts: int
    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Exhausted(_Outcome):
    """Every attempt failed with a transient error."""
    error: BaseException
    attempts: int

    def unwrap(self) -> Any:
        raise self.error


@dataclass(frozen=True)
class Aborted(_Outcome):
    """A permanent error stopped the loop before the budget was spent."""
    error: BaseException
    attempts: int

    def unwrap(self) -> Any:
        raise self.error


RetryOutcome = Union[Succeeded[T], Exhausted, Aborted]


def _notify(on_retry: RetryObserver | None, attempt: int, error: BaseException, delay: float) -> None:
    if on_retry is None:
        return
    try:
        on_retry(attempt, error, delay)
    except Exception as e:
        logger.warning(f"Retry observer raised and was ignored: {e}")


def _retry_after(error: BaseException) -> float:
    """Server-requested wait carried by the error (e.g. a 429), or 0."""
    hint = getattr(error, "retry_after", None)
    if isinstance(hint, (int, float)) and not isinstance(hint, bool) and hint > 0:
        return float(hint)
    return 0.0


async def execute(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    on_retry: RetryObserver | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> RetryOutcome[T]:
    """Run ``operation`` under ``policy`` and report how it ended.

    Args:
        operation: Zero-argument callable returning a value or an awaitable.
        policy: Retry schedule and classifier.
        on_retry: Observer called as ``(failed_attempt, error, delay)`` right
            before each backoff wait. Its exceptions are logged and ignored.
        sleep: Coroutine used for the backoff wait.

    Returns:
        ``Succeeded``, ``Exhausted`` or ``Aborted``.
    """
    attempt = 1
    while True:
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            if policy.classify(e) is ErrorClass.PERMANENT:
                logger.warning(f"Permanent error on attempt {attempt}, not retrying: {e}")
                return Aborted(error=e, attempts=attempt)

            if attempt >= policy.max_attempts:
                logger.warning(f"All {policy.max_attempts} attempts failed: {e}")
                return Exhausted(error=e, attempts=attempt)

            delay = max(policy.delay_before(attempt + 1), _retry_after(e))
            logger.info(
                f"Attempt {attempt}/{policy.max_attempts} failed: {e}. Retrying in {delay:g}s"
            )
            _notify(on_retry, attempt, e, delay)
            await sleep(delay)
            attempt += 1
            continue

        if attempt > 1:
            logger.info(f"Operation succeeded on attempt {attempt}")
        return Succeeded(value=result, attempts=attempt)


async def execute_or_raise(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    on_retry: RetryObserver | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Like :func:`execute`, but return the value or raise the last failure."""
    outcome = await execute(operation, policy, on_retry=on_retry, sleep=sleep)
    return outcome.unwrap()
