from __future__ import annotations

import psutil


def descendant_pids(pid: int) -> list[int]:
    """Return pids of every process spawned, directly or transitively, by pid."""
    try:
        children = psutil.Process(pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []
    return [child.pid for child in children]
