from __future__ import annotations

import asyncio
import codecs
import subprocess
from collections.abc import Callable, Coroutine, Generator
from typing import IO, Any

from shproc.config.schema import ExecutionContext
from shproc.exec.capture import collect, pipe_into_process, pipe_into_sink
from shproc.exec.kill import DEFAULT_SIGNAL, Signal, kill_tree, signal_name
from shproc.exec.output import Failure, ProcessOutput, Result, Success
from shproc.exec.timeout import arm_timeout
from shproc.util.duration import Duration, parse_duration
from shproc.util.errors import (
    HaltedAccessError,
    PipeMisuseError,
    ProcessFailure,
    SpawnError,
    StreamUnavailableError,
    TaskStateError,
)
from shproc.util.exit_codes import errno_message, errno_name, exit_code_info

_POLL_INTERVAL_SEC = 0.01


def _noop() -> None:
    return None


class _Buffer:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.text = ""

    def feed(self, chunk: bytes, *, final: bool = False) -> str:
        data = self._decoder.decode(chunk, final=final)
        self.text += data
        return data


class ProcessTask:
    """One shell command bound to one OS process and its eventual ProcessOutput.

    The task starts itself on the next loop iteration unless halted. Awaiting it,
    reading a stream accessor, or piping into it starts it earlier. Awaiting
    returns the ProcessOutput on exit code 0 (or any exit code with nothrow) and
    raises ProcessFailure otherwise.
    """

    def __init__(self, command: str, snapshot: ExecutionContext, origin: str) -> None:
        self._command = command
        self._origin = origin
        self._snapshot = snapshot
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future[ProcessOutput] = self._loop.create_future()
        self._stdio = ["inherit", "pipe", "pipe"]
        self._proc: subprocess.Popen[bytes] | None = None
        self._started = False
        self._nothrow = False
        self._quiet = False
        self._halted = False
        self._piped = False
        self._prestart: Callable[[], Any] = _noop
        self._poststart: Callable[[], Any] = _noop
        self._timeout_ms: float | None = None
        self._timeout_signal: Signal = DEFAULT_SIGNAL
        self._background: set[asyncio.Task[Any]] = set()
        self._drains: list[asyncio.Task[Any]] = []
        self._stdout = _Buffer()
        self._stderr = _Buffer()
        self._combined = ""
        self._loop.call_soon(self._scheduled_start)

    def __repr__(self) -> str:
        return f"ProcessTask({self._command!r}, pid={self.pid}, done={self._future.done()})"

    @property
    def command(self) -> str:
        return self._command

    @property
    def pid(self) -> int | None:
        return None if self._proc is None else self._proc.pid

    @property
    def is_halted(self) -> bool:
        return self._halted

    def done(self) -> bool:
        return self._future.done()

    def _scheduled_start(self) -> None:
        if not self._halted:
            self.start()

    def start(self) -> ProcessTask:
        if self._started:
            return self
        self._started = True
        ctx = self._snapshot
        self._prestart()
        ctx.log({"kind": "cmd", "cmd": self._command, "verbose": self._verbose()})
        try:
            self._proc = ctx.spawn(
                ctx.prefix + self._command,
                cwd=ctx.cwd,
                shell=ctx.shell,
                stdio=list(self._stdio),
                env=ctx.env,
            )
        except (OSError, ValueError) as exc:
            self._reject_spawn(exc)
            return self

        proc = self._proc
        readers = []
        if not self._piped:
            readers.append(self._spawn_background(collect(proc.stdout, self._on_stdout)))
        readers.append(self._spawn_background(collect(proc.stderr, self._on_stderr)))
        self._spawn_background(self._supervise(proc, readers))
        self._poststart()
        if self._timeout_ms is not None:
            arm_timeout(self._future, self._timeout_ms / 1000.0, self._on_timeout)
        return self

    def _verbose(self) -> bool:
        return self._snapshot.verbose and not self._quiet

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = self._loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _on_stdout(self, chunk: bytes) -> None:
        data = self._stdout.feed(chunk)
        self._combined += data
        self._snapshot.log({"kind": "stdout", "data": data, "verbose": self._verbose()})

    def _on_stderr(self, chunk: bytes) -> None:
        data = self._stderr.feed(chunk)
        self._combined += data
        self._snapshot.log({"kind": "stderr", "data": data, "verbose": self._verbose()})

    async def _supervise(
        self, proc: subprocess.Popen[bytes], readers: list[asyncio.Task[Any]]
    ) -> None:
        await asyncio.gather(*readers, *self._drains, return_exceptions=True)
        while proc.poll() is None:
            await asyncio.sleep(_POLL_INTERVAL_SEC)
        self._combined += self._stdout.feed(b"", final=True) + self._stderr.feed(b"", final=True)
        self._close(proc.returncode)

    def _close(self, returncode: int) -> None:
        if self._future.done():
            return
        code: int | None = returncode
        sig: str | None = None
        if returncode < 0:
            code, sig = None, signal_name(-returncode)
        message = f"exit code: {code}"
        if code != 0 or sig is not None:
            info = exit_code_info(code)
            detail = self._stderr.text or "\n"
            message = f"{detail}    at {self._origin}"
            message += f"\n    exit code: {code}{f' ({info})' if info else ''}"
            if sig is not None:
                message += f"\n    signal: {sig}"
        output = ProcessOutput(
            exit_code=code,
            signal=sig,
            stdout=self._stdout.text,
            stderr=self._stderr.text,
            combined=self._combined,
            message=message,
        )
        if code == 0 or self._nothrow:
            self._future.set_result(output)
        else:
            self._future.set_exception(ProcessFailure(output))

    def _reject_spawn(self, exc: Exception) -> None:
        number = getattr(exc, "errno", None)
        message = (
            f"{exc}\n"
            f"    errno: {number} ({errno_message(number)})\n"
            f"    code: {errno_name(number)}\n"
            f"    at {self._origin}"
        )
        output = ProcessOutput(
            exit_code=None,
            signal=None,
            stdout=self._stdout.text,
            stderr=self._stderr.text,
            combined=self._combined,
            message=message,
        )
        self._future.set_exception(SpawnError(output))

    def _on_timeout(self) -> None:
        if self._proc is not None and not self._future.done():
            self._spawn_background(self.kill(self._timeout_signal))

    def _stream(self, slot: int, name: str) -> IO[bytes]:
        self.start()
        if self._proc is None:
            raise StreamUnavailableError(f"the {name} of {self._command!r} has no process")
        stream = (self._proc.stdin, self._proc.stdout, self._proc.stderr)[slot]
        if stream is None:
            raise StreamUnavailableError(f"the {name} of subprocess is not a pipe")
        return stream

    @property
    def stdin(self) -> IO[bytes]:
        if not self._started:
            self._stdio[0] = "pipe"
        return self._stream(0, "stdin")

    @property
    def stdout(self) -> IO[bytes]:
        return self._stream(1, "stdout")

    @property
    def stderr(self) -> IO[bytes]:
        return self._stream(2, "stderr")

    def __await__(self) -> Generator[Any, None, ProcessOutput]:
        if self._halted and not self._started:
            raise HaltedAccessError(f"the process is halted: {self._command!r}")
        self.start()
        return self._future.__await__()

    async def result(self) -> Result:
        try:
            return Success(await self)
        except ProcessFailure as exc:
            return Failure(exc.output)

    async def exit_code(self) -> int | None:
        return (await self.result()).output.exit_code

    def pipe(self, dest: Any) -> Any:
        if isinstance(dest, str):
            raise PipeMisuseError("pipe() does not take strings, build a task with sh() first")
        if self._future.done():
            if isinstance(dest, ProcessTask):
                dest.stdin.close()
            raise PipeMisuseError("pipe() must not be called after the task has resolved")
        if self._started and not self._piped:
            raise PipeMisuseError("pipe() must be called before the source task starts")
        self._piped = True
        self._future.add_done_callback(_mark_retrieved)
        if isinstance(dest, ProcessTask):
            dest._stdio[0] = "pipe"
            dest._prestart = self.start
            dest._poststart = lambda: self._connect(dest)
            return dest
        self._poststart = lambda: self._drains.append(
            self._spawn_background(pipe_into_sink(self.stdout, dest))
        )
        return self

    def _connect(self, dest: ProcessTask) -> None:
        if dest._proc is None or dest._proc.stdin is None:
            raise TaskStateError("pipe destination has no stdin to write to")
        if self._proc is None or self._proc.stdout is None:
            dest._proc.stdin.close()
            return
        dest._spawn_background(pipe_into_process(self._proc.stdout, dest._proc.stdin))

    async def kill(self, signal: Signal = DEFAULT_SIGNAL) -> list[int]:
        if self._proc is None:
            raise TaskStateError("trying to kill a process without creating one")
        if not self._proc.pid:
            raise TaskStateError("the process pid is unknown")
        return kill_tree(self._proc.pid, signal)

    def stdio(self, stdin: str, stdout: str = "pipe", stderr: str = "pipe") -> ProcessTask:
        self._stdio = [stdin, stdout, stderr]
        return self

    def nothrow(self) -> ProcessTask:
        self._nothrow = True
        return self

    def quiet(self) -> ProcessTask:
        self._quiet = True
        return self

    def verbose(self) -> ProcessTask:
        self._quiet = False
        return self

    def timeout(self, duration: Duration, signal: Signal = DEFAULT_SIGNAL) -> ProcessTask:
        self._timeout_ms = parse_duration(duration)
        self._timeout_signal = signal
        return self

    def halt(self) -> ProcessTask:
        self._halted = True
        return self


def _mark_retrieved(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()
