"""
Timing helpers for the kiosk: uptime formatting and startup retries.
"""

import time
from typing import Callable, Tuple, Type, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

_UNITS = (('d', 86400), ('h', 3600), ('m', 60))


def format_uptime(seconds: float) -> str:
    """
    Format a duration as e.g. "1d 2h 30m 45s".

    Zero-valued larger units are left out; seconds are always shown.
    """
    remaining = int(seconds)
    parts = []
    for suffix, size in _UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f'{count}{suffix}')
    parts.append(f'{remaining}s')
    return ' '.join(parts)


def retry_with_backoff(
    func: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Call func until it succeeds, waiting longer after each failure.

    Args:
        func: Zero-argument callable
        max_attempts: Total attempts before giving up
        initial_delay: Wait after the first failure (seconds)
        backoff_factor: Multiplier applied to the wait after each failure
        retry_on: Exception types that trigger another attempt;
            anything else propagates immediately
        sleep: Sleep function

    Returns:
        Whatever func returns

    Raises:
        The last error once max_attempts is reached
    """
    if max_attempts < 1:
        raise ValueError('max_attempts must be at least 1')

    delay = initial_delay
    attempt = 1
    while True:
        try:
            return func()
        except retry_on as e:
            if attempt >= max_attempts:
                raise
            logger.warning(f'Attempt {attempt}/{max_attempts} failed: {e}; retrying in {delay:.1f}s')
            sleep(delay)
            delay *= backoff_factor
            attempt += 1
