# sticker_studio/generation/retry.py
"""Retry policy with backoff and model fallback, built on tenacity."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from sticker_studio.cancellation import CancellationToken, RunCancelled

from .errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step: float = 5.0, offset: float = 2.0) -> Callable[[int], float]:
    """Backoff of `attempt * step + offset` seconds (7s, 12s, 17s by default)."""

    def _backoff(attempt: int) -> float:
        return attempt * step + offset

    return _backoff


def constant_backoff(seconds: float) -> Callable[[int], float]:
    def _backoff(attempt: int) -> float:
        return seconds

    return _backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a backoff function and a retryable predicate.

    Shared by the client's model fallback and by every batching strategy.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff: Maps the number of the attempt that just failed to a delay
        retryable: Decides whether an exception consumes another attempt
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = linear_backoff()
    retryable: Callable[[BaseException], bool] = is_retryable

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, RunCancelled):
            return False
        return self.retryable(exc)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff(retry_state.attempt_number)

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        token: CancellationToken | None = None,
        **kwargs: Any,
    ) -> T:
        """
        Run `fn` under this policy.

        Backoff waits go through the token so a cancelled run stops waiting
        immediately. The last exception is re-raised once attempts run out;
        non-retryable exceptions are re-raised on the spot.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.should_retry),
            sleep=token.sleep if token is not None else asyncio.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)


async def with_model_fallback(
    operation: Callable[[str], Awaitable[T]],
    models: Sequence[str],
    policy: RetryPolicy,
    token: CancellationToken | None = None,
) -> T:
    """
    Try `operation(model)` on each model in order.

    Each model gets `policy.max_attempts` attempts. A retryable failure that
    outlasts them moves on to the next model; a non-retryable failure is raised
    immediately. When every model is exhausted the last error is raised.

    Raises:
        ValueError: If no models are given
    """
    if not models:
        raise ValueError("At least one candidate model is required")

    last_error: BaseException | None = None
    for model in models:
        if token is not None:
            token.raise_if_cancelled()
        try:
            logger.info(f"Attempting generation with model={model}")
            return await policy.call(operation, model, token=token)
        except Exception as e:
            if not policy.should_retry(e):
                raise
            last_error = e
            logger.warning(f"Model {model} exhausted retries ({e}), switching model")

    raise last_error
