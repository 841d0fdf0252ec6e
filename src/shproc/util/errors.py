"""Error types raised by the execution engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shproc.exec.output import ProcessOutput


class ShprocError(Exception):
    """Base error for shproc."""


class MalformedCommandError(ShprocError):
    """Raised when a command template has an undefined fragment."""


class StreamUnavailableError(ShprocError):
    """Raised when a stdio slot of a task was not configured as pipe."""


class HaltedAccessError(ShprocError):
    """Raised when a halted task is awaited before it was started."""


class PipeMisuseError(ShprocError):
    """Raised when pipe() gets a string or is called after resolution."""


class TaskStateError(ShprocError):
    """Raised when an operation needs a running process that does not exist."""


class ConfigError(ShprocError):
    """Raised when an overrides file cannot be loaded or validated."""


class ProcessFailure(ShprocError):
    """A process exited non-zero or was terminated by a signal."""

    def __init__(self, output: ProcessOutput) -> None:
        super().__init__(output.message)
        self.output = output

    @property
    def exit_code(self) -> int | None:
        return self.output.exit_code

    @property
    def signal(self) -> str | None:
        return self.output.signal

    @property
    def stdout(self) -> str:
        return self.output.stdout

    @property
    def stderr(self) -> str:
        return self.output.stderr


class SpawnError(ProcessFailure):
    """The operating system could not create the process."""
