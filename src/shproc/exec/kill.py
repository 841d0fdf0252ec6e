from __future__ import annotations

import os
import signal as signal_module
from contextlib import suppress

from shproc.util.ps_tree import descendant_pids

DEFAULT_SIGNAL = "SIGTERM"

Signal = str | int | signal_module.Signals


def to_signal(sig: Signal) -> signal_module.Signals:
    if isinstance(sig, str):
        name = sig.upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            return signal_module.Signals[name]
        except KeyError as exc:
            raise ValueError(f"unknown signal: {sig!r}") from exc
    return signal_module.Signals(sig)


def signal_name(number: int) -> str:
    try:
        return signal_module.Signals(number).name
    except ValueError:
        return str(number)


def kill_tree(pid: int, sig: Signal = DEFAULT_SIGNAL) -> list[int]:
    """Signal every descendant of pid, then pid itself. Returns pids in signal order."""
    signum = to_signal(sig)
    targets = [*descendant_pids(pid), pid]
    for target in targets:
        with suppress(OSError):
            os.kill(target, signum)
    return targets
