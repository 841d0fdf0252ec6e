from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from contextlib import suppress
from typing import IO, Any

CHUNK_SIZE = 4096


async def open_reader(pipe: IO[bytes]) -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(loop=loop)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader, loop=loop), pipe)
    return reader


async def open_writer(pipe: IO[bytes]) -> asyncio.StreamWriter:
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.connect_write_pipe(
        lambda: asyncio.StreamReaderProtocol(asyncio.StreamReader(loop=loop), loop=loop), pipe
    )
    return asyncio.StreamWriter(transport, protocol, None, loop)


async def collect(pipe: IO[bytes] | None, on_chunk: Callable[[bytes], None]) -> None:
    """Feed every chunk read from pipe to on_chunk until EOF."""
    if pipe is None:
        return
    try:
        reader = await open_reader(pipe)
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                break
            on_chunk(chunk)
    except (OSError, RuntimeError):
        return


async def pipe_into_process(source: IO[bytes], stdin: IO[bytes]) -> None:
    """Copy source to a child's stdin, closing stdin at EOF so the child sees it."""
    writer = await open_writer(stdin)
    try:
        reader = await open_reader(source)
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                break
            writer.write(chunk)
            await writer.drain()
    except (BrokenPipeError, ConnectionResetError):
        pass
    finally:
        writer.close()
        with suppress(BrokenPipeError, ConnectionResetError):
            await writer.wait_closed()


async def pipe_into_sink(source: IO[bytes], sink: Any) -> None:
    """Copy source into a writable sink; the sink stays open."""
    reader = await open_reader(source)
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            break
        _write(sink, chunk)
        drain = getattr(sink, "drain", None)
        if drain is not None:
            await drain()
    flush = getattr(sink, "flush", None)
    if flush is not None:
        result = flush()
        if inspect.isawaitable(result):
            await result


def _write(sink: Any, chunk: bytes) -> None:
    if hasattr(sink, "buffer"):
        sink.buffer.write(chunk)
        return
    try:
        sink.write(chunk)
    except TypeError:
        sink.write(chunk.decode("utf-8", errors="replace"))
