from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any

from shproc.exec.spawn import spawn as default_spawn
from shproc.util.log import log as default_log
from shproc.util.quote import no_quote, quote, quote_posix, quote_powershell

CONTEXT_KEYS = ("cwd", "env", "shell", "prefix", "quote", "verbose", "spawn", "log")


@dataclass(slots=True)
class ExecutionContext:
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=lambda: dict(os.environ))
    shell: str | None = None
    prefix: str = ""
    quote: Callable[[str], str] = no_quote
    verbose: bool = False
    spawn: Callable[..., Any] = default_spawn
    log: Callable[[dict[str, Any]], None] = default_log

    def copy(self, **overrides: Any) -> ExecutionContext:
        """Shallow copy with its own env mapping; unknown keys raise TypeError."""
        if "env" not in overrides:
            overrides["env"] = dict(self.env)
        return replace(self, **overrides)

    def snapshot(self) -> ExecutionContext:
        return self.copy()

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def platform_defaults() -> ExecutionContext:
    bash = shutil.which("bash")
    if bash is not None:
        return ExecutionContext(shell=bash, prefix="set -euo pipefail;", quote=quote)
    if sys.platform == "win32":
        powershell = shutil.which("powershell.exe")
        return ExecutionContext(shell=powershell, quote=quote_powershell)
    return ExecutionContext(shell=shutil.which("sh"), quote=quote_posix)
