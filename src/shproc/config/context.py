"""Ambient execution context, scoped per logical chain of awaits.

The active context lives in a ContextVar. ``within`` runs a callback in a
copied ``contextvars.Context`` holding a copy of the active settings, so
coroutines it awaits and tasks it creates see that copy while sibling scopes
and the parent keep their own.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, TypeVar

from shproc.config.schema import ExecutionContext, platform_defaults

T = TypeVar("T")

defaults = platform_defaults()
_active: ContextVar[ExecutionContext | None] = ContextVar("shproc_context", default=None)


def get_context() -> ExecutionContext:
    """Return the innermost active scope, or the process-wide defaults."""
    return _active.get() or defaults


def within(callback: Callable[[], T], **overrides: Any) -> T | asyncio.Task[Any]:
    scope = get_context().copy(**overrides)
    ctx = contextvars.copy_context()
    ctx.run(_active.set, scope)
    result = ctx.run(callback)
    if inspect.isawaitable(result):
        loop = asyncio.get_running_loop()
        return loop.create_task(_await(result), context=ctx)
    return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


@contextmanager
def scoped(**overrides: Any) -> Iterator[ExecutionContext]:
    token = _active.set(get_context().copy(**overrides))
    try:
        yield _active.get()  # type: ignore[misc]
    finally:
        _active.reset(token)
