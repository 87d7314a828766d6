"""Retry-with-backoff policy shared by the classifier, payer and audit paths."""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _always(error: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    Max attempts, exponential backoff and a retryable-error predicate.

    The delay before retry ``n`` is ``backoff_base * 2 ** (n - 1)``, so a base
    of 2 seconds waits 2s, 4s, 8s. Non-retryable errors and the error from the
    final attempt are re-raised unchanged.
    """
    max_attempts: int = 3
    backoff_base: float = 2.0
    max_backoff: float = 60.0
    retryable: Callable[[BaseException], bool] = _always
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)
    name: str = "operation"

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.backoff_base * 2 ** (attempt - 1), self.max_backoff)

    def worst_case_seconds(self, attempt_timeout: float) -> float:
        """Longest a run can take when every attempt uses its full ``attempt_timeout``."""
        backoffs = sum(self.backoff(n) for n in range(1, self.max_attempts))
        return self.max_attempts * attempt_timeout + backoffs

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying after transient failure",
            operation=self.name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` under this policy."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.max_backoff),
            retry=retry_if_exception(self.retryable),
            before_sleep=self._before_sleep,
            sleep=self.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await fn(*args, **kwargs)
        raise RuntimeError("retry loop exited without a result")  # pragma: no cover


NO_RETRY = RetryPolicy(max_attempts=1, backoff_base=0.0, name="single_attempt")
