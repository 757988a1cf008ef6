# dbcoach/orchestration/retry_policy.py
"""
Bounded exponential backoff around a single fallible async call.

Rules:
- Up to max_retries + 1 attempts
- Only transient failures (rate limit, unavailable, timeout, network) are retried
- Anything else is re-raised immediately without consuming a retry
- Delay before retry N is base_delay * 2**N

The policy never touches session state. The caller decides what a
success or a RetryExhaustedError means.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Type, TypeVar

from dbcoach.core.config import settings
from dbcoach.core.exceptions import RetryExhaustedError
from dbcoach.core.logging import log
from dbcoach.orchestration.failure_classifier import FailureClassifier

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


class RetryPolicy:
    """
    Retry policy for generator calls.

    Philosophy:
    - Transient provider failures usually clear up within seconds
    - Rejected requests never do, so they fail fast
    - After the budget is spent the failure is persistent → surface it
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        classifier: Type[FailureClassifier] = FailureClassifier,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Optional[RetryCallback] = None,
    ):
        self.max_retries = settings.generation.max_retries if max_retries is None else max_retries
        self.base_delay = settings.generation.base_delay if base_delay is None else base_delay
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.classifier = classifier
        self._sleep = sleep
        self._on_retry = on_retry

    def get_retry_delay(self, attempt: int) -> float:
        """
        Get retry delay for attempt number.

        Args:
            attempt: Attempt number (0-indexed) that just failed

        Returns:
            Delay in seconds
        """
        return self.base_delay * (2 ** attempt)

    async def execute(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """
        Run operation with retries.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            label: Name used in log lines

        Returns:
            Whatever operation returns on the first successful attempt

        Raises:
            The original error if it is not retryable
            RetryExhaustedError after max_retries + 1 retryable failures
        """
        last_error: Optional[BaseException] = None
        attempts = 0

        for attempt in range(self.max_retries + 1):  # +1 for initial attempt
            attempts = attempt + 1
            try:
                result = await operation()
            except Exception as e:
                last_error = e
                if not self.classifier.is_retryable(e):
                    log("RETRY", f"❌ {label} failed with non-retryable error: {e}")
                    raise

                if attempt == self.max_retries:
                    log("RETRY", f"🔒 Max retries reached for {label}")
                    break

                delay = self.get_retry_delay(attempt)
                log("RETRY", f"⏳ {label} attempt {attempts} failed ({e}), retrying in {delay:.1f}s...")
                if self._on_retry is not None:
                    self._on_retry(attempts, e, delay)
                await self._sleep(delay)
                continue

            if attempt > 0:
                log("RETRY", f"✅ Retry succeeded for {label} on attempt {attempts}")
            return result

        raise RetryExhaustedError(attempts, last_error) from last_error
