from __future__ import annotations

import asyncio
import io
import subprocess
import sys

import pytest

from shproc.exec.capture import collect, pipe_into_process, pipe_into_sink
from shproc.exec.timeout import arm_timeout


@pytest.mark.asyncio
async def test_arm_timeout_fires_when_future_is_pending() -> None:
    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    fired: list[bool] = []
    arm_timeout(future, 0.01, lambda: fired.append(True))
    await asyncio.sleep(0.05)
    assert fired == [True]


@pytest.mark.asyncio
async def test_arm_timeout_is_cleared_when_future_settles() -> None:
    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    fired: list[bool] = []
    handle = arm_timeout(future, 0.03, lambda: fired.append(True))
    future.set_result(None)
    await asyncio.sleep(0.06)
    assert fired == []
    assert handle.cancelled()


@pytest.mark.asyncio
async def test_collect_reads_all_stream_data() -> None:
    proc = subprocess.Popen(
        [sys.executable, "-c", "print('line-a');print('line-b')"],
        stdout=subprocess.PIPE,
    )
    chunks: list[bytes] = []
    await collect(proc.stdout, chunks.append)
    proc.wait()
    assert b"".join(chunks).splitlines() == [b"line-a", b"line-b"]


@pytest.mark.asyncio
async def test_collect_ignores_missing_pipe() -> None:
    chunks: list[bytes] = []
    await collect(None, chunks.append)
    assert chunks == []


@pytest.mark.asyncio
async def test_pipe_into_process_copies_bytes_and_closes_stdin() -> None:
    source = subprocess.Popen(
        [sys.executable, "-c", "import sys; sys.stdout.write('x' * 100000)"],
        stdout=subprocess.PIPE,
    )
    dest = subprocess.Popen(
        [sys.executable, "-c", "import sys; print(len(sys.stdin.read()))"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
    )
    assert source.stdout is not None and dest.stdin is not None
    await pipe_into_process(source.stdout, dest.stdin)
    chunks: list[bytes] = []
    await collect(dest.stdout, chunks.append)
    source.wait()
    dest.wait()
    assert b"".join(chunks).strip() == b"100000"


@pytest.mark.asyncio
async def test_pipe_into_sink_accepts_text_sinks() -> None:
    proc = subprocess.Popen(
        [sys.executable, "-c", "print('to-text')"],
        stdout=subprocess.PIPE,
    )
    assert proc.stdout is not None
    sink = io.StringIO()
    await pipe_into_sink(proc.stdout, sink)
    proc.wait()
    assert sink.getvalue().strip() == "to-text"
