from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from typing import Literal

StdioMode = Literal["inherit", "pipe", "ignore"]

_STDIO_MODES: dict[str, int | None] = {
    "inherit": None,
    "pipe": subprocess.PIPE,
    "ignore": subprocess.DEVNULL,
}


def stdio_target(mode: str) -> int | None:
    try:
        return _STDIO_MODES[mode]
    except KeyError as exc:
        raise ValueError(f"unknown stdio mode: {mode!r}") from exc


def spawn(
    command: str,
    *,
    cwd: str | None,
    shell: str | None,
    stdio: Sequence[str],
    env: Mapping[str, str],
) -> subprocess.Popen[bytes]:
    """Start command through shell and return the process handle."""
    stdin, stdout, stderr = (stdio_target(mode) for mode in stdio)
    if shell is None:
        return subprocess.Popen(
            command,
            shell=True,
            cwd=cwd,
            env=dict(env),
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
        )
    return subprocess.Popen(
        [shell, "-c", command],
        cwd=cwd,
        env=dict(env),
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
    )
