from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Awaitable, Callable, Iterator
from typing import Any, TypeVar

from shproc.config.context import get_context
from shproc.util.duration import Duration, parse_duration

T = TypeVar("T")

Action = Callable[[], Awaitable[T]]


async def sleep(duration: Duration) -> None:
    await asyncio.sleep(parse_duration(duration) / 1000.0)


def exp_backoff(max: Duration = "60s", rand: Duration = "100ms") -> Iterator[int]:
    """Yield min(2**n, max) + jitter in ms for n = 1, 2, ... forever."""
    max_ms = parse_duration(max)
    rand_ms = parse_duration(rand)
    n = 1
    while True:
        jitter = math.floor(random.random() * rand_ms)
        yield math.ceil(min(2**n, max_ms)) + jitter
        n += 1


async def retry(
    count: float,
    delay_or_action: Duration | Iterator[float] | Action[T],
    action: Action[T] | None = None,
) -> T:
    """Run action up to count times and re-raise the last failure unchanged."""
    delay_static = 0.0
    delay_gen: Iterator[float] | None = None
    if callable(delay_or_action):
        callback = delay_or_action
    else:
        if isinstance(delay_or_action, Iterator):
            delay_gen = delay_or_action
        else:
            delay_static = parse_duration(delay_or_action)
        if action is None:
            raise TypeError("retry() needs an action after the delay")
        callback = action

    total = count
    remaining = count
    attempt = 0
    last_exc: BaseException | None = None
    while remaining > 0:
        remaining -= 1
        attempt += 1
        try:
            return await callback()
        except Exception as exc:
            last_exc = exc
            delay = delay_static
            if delay_gen is not None:
                delay = next(delay_gen)
            _log_attempt(attempt, total, delay)
            if remaining <= 0:
                break
            if delay > 0:
                await asyncio.sleep(delay / 1000.0)
    if last_exc is None:
        raise ValueError("retry() count must be >= 1")
    raise last_exc


def _log_attempt(attempt: int, total: float, delay: float) -> None:
    ctx = get_context()
    suffix = "" if math.isinf(total) else f"/{int(total)}"
    error = f" FAIL  Attempt: {attempt}{suffix}"
    if delay > 0:
        error += f"; next in {delay:g}ms"
    event: dict[str, Any] = {
        "kind": "retry",
        "error": error,
        "attempt": attempt,
        "total": None if math.isinf(total) else int(total),
        "delay": delay if delay > 0 else None,
        "verbose": ctx.verbose,
    }
    ctx.log(event)
