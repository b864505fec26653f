"""Decorators that report function metrics.

Example:
    >>> from shardstatsd.instrumentation import counted, timed
    >>>
    >>> @timed("checkout.duration")
    ... def checkout(cart):
    ...     return charge(cart)
    >>>
    >>> @counted(count_exceptions=True)
    ... def sync_inventory():
    ...     ...
"""

from __future__ import annotations

import functools
from time import perf_counter
from typing import Callable, ParamSpec, TypeVar

from shardstatsd.client import Statsd, get_client

P = ParamSpec("P")
R = TypeVar("R")


def _default_stat(func: Callable[..., object]) -> str:
    return f"{func.__module__}.{func.__qualname__}"


def timed(
    stat: str | None = None,
    *,
    sample_rate: float = 1,
    client: Statsd | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Report each call's duration in milliseconds via ``timing``.

    Calls that raise are not reported.

    Args:
        stat: Stat name (defaults to ``module.qualname``).
        sample_rate: Sample rate for the timing.
        client: Client to report to (defaults to the global client).
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        name = stat or _default_stat(func)

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = perf_counter()
            result = func(*args, **kwargs)
            elapsed = round((perf_counter() - start) * 1000, 5)
            (client or get_client()).timing(name, elapsed, sample_rate)
            return result

        return wrapper

    return decorator


def counted(
    stat: str | None = None,
    *,
    sample_rate: float = 1,
    count_exceptions: bool = True,
    client: Statsd | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Increment a counter on every call.

    With ``count_exceptions``, ``{stat}.exceptions`` is also incremented
    when the function raises; the exception still propagates.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        name = stat or _default_stat(func)

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            statsd = client or get_client()
            statsd.increment(name, sample_rate)
            try:
                return func(*args, **kwargs)
            except Exception:
                if count_exceptions:
                    statsd.increment(f"{name}.exceptions", sample_rate)
                raise

        return wrapper

    return decorator
