from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any


def arm_timeout(
    future: asyncio.Future[Any], timeout_sec: float, on_expire: Callable[[], None]
) -> asyncio.TimerHandle:
    """Call on_expire after timeout_sec unless future settles first."""
    loop = future.get_loop()
    handle = loop.call_later(timeout_sec, on_expire)
    future.add_done_callback(lambda _fut: handle.cancel())
    return handle
