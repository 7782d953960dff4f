"""
Retry helpers shared by HTTP clients.

Exponential back-off with jitter, honouring ``Retry-After`` when the
server sends one.
"""

import random
from typing import Any


# Status codes worth retrying: rate limiting and transient gateway failures
RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


def calculate_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    retry_after: int | None = None,
) -> float:
    """
    Calculate the delay before the next retry.

    Args:
        attempt: Zero-based attempt number
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any delay
        backoff_factor: Multiplier applied per attempt
        jitter: Random jitter factor (0.1 = +/-10%)
        retry_after: Server-provided delay, used instead of back-off

    Returns:
        Delay in seconds
    """
    if retry_after is not None:
        return min(float(retry_after), max_delay)

    delay = min(initial_delay * (backoff_factor**attempt), max_delay)
    if jitter:
        delay += delay * jitter * random.uniform(-1.0, 1.0)
    return max(0.0, delay)


def get_retry_after(response: Any) -> int | None:
    """Parse the ``Retry-After`` header as whole seconds, if present."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
