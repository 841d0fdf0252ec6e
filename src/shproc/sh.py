from __future__ import annotations

import os
import stat
import sys
from collections.abc import Sequence
from typing import Any

from shproc.config.context import get_context, scoped, within
from shproc.exec.capture import open_reader
from shproc.exec.command import build_command, call_site, split_template
from shproc.exec.output import Failure, ProcessOutput, Success
from shproc.exec.retry import exp_backoff, retry, sleep
from shproc.exec.task import ProcessTask

__all__ = [
    "Failure",
    "ProcessOutput",
    "ProcessTask",
    "Success",
    "exp_backoff",
    "get_context",
    "read_stdin",
    "retry",
    "scoped",
    "sh",
    "sleep",
    "within",
]


def sh(template: str | Sequence[str | None], *values: Any) -> ProcessTask:
    """Build a command from template and values and return its (not yet started) task.

    ``template`` is either a string with ``{}`` placeholders or the list of
    literal fragments around the values. A string without values runs as
    written. Values are quoted for the active shell; lists are quoted per item
    and joined with spaces.
    """
    origin = call_site()
    ctx = get_context()
    command = build_command(split_template(template, values), values, ctx.quote, origin=origin)
    return ProcessTask(command, ctx.snapshot(), origin)


async def read_stdin() -> str:
    """Read all of this interpreter's stdin."""
    fd = sys.stdin.fileno()
    if stat.S_ISFIFO(os.fstat(fd).st_mode) or os.isatty(fd):
        reader = await open_reader(sys.stdin.buffer)
        data = await reader.read()
    else:
        data = sys.stdin.buffer.read()
    return data.decode("utf-8", errors="replace")
