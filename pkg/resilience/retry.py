"""
Fixed-delay retry helpers.

Bounded retries with a constant pause between attempts, used for broker
reconnects and for waiting on dependent services.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pkg.logger.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy with a fixed delay.

    Attributes:
        max_attempts: Maximum number of attempts (must be >= 1).
        delay_seconds: Pause between consecutive attempts.
    """
    max_attempts: int = 10
    delay_seconds: float = 5.0

    def __post_init__(self) -> None:
        """Validate policy constraints."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")

    def exhausted(self, attempts: int) -> bool:
        """Return True once `attempts` failures have used up the policy."""
        return attempts >= self.max_attempts


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    policy: RetryPolicy = RetryPolicy(),
    name: str = "condition",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> bool:
    """
    Poll an async predicate until it returns True.

    Args:
        predicate: Async callable returning readiness.
        policy: Retry policy bounding the polling.
        name: Condition name for logging.
        sleep: Sleep coroutine (injectable for tests).

    Returns:
        True if the predicate became true within the policy, False otherwise.
    """
    for attempt in range(1, policy.max_attempts + 1):
        if await predicate():
            return True

        if attempt < policy.max_attempts:
            logger.info(
                "Waiting for condition",
                condition=name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
            )
            await sleep(policy.delay_seconds)

    logger.warning(
        "Condition not met, giving up",
        condition=name,
        attempts=policy.max_attempts,
    )
    return False
