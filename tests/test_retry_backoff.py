from __future__ import annotations

import math
import time
from typing import Any

import pytest

from shproc.config.context import scoped
from shproc.exec.retry import exp_backoff, retry, sleep
from shproc.sh import sh
from shproc.util.errors import ProcessFailure


def test_exp_backoff_values_stay_within_jitter_window() -> None:
    gen = exp_backoff("60s", "100ms")
    for n in range(1, 20):
        base = min(2**n, 60_000)
        value = next(gen)
        assert base <= value < base + 100


def test_exp_backoff_caps_at_max_without_jitter() -> None:
    gen = exp_backoff(10, 0)
    assert [next(gen) for _ in range(5)] == [2, 4, 8, 10, 10]


def test_exp_backoff_fresh_generator_restarts_sequence() -> None:
    first = exp_backoff(1000, 0)
    next(first)
    next(first)
    assert next(exp_backoff(1000, 0)) == 2
    assert next(first) == 8


def test_exp_backoff_rounds_fractional_max_up() -> None:
    gen = exp_backoff(0.5, 0)
    assert [next(gen) for _ in range(3)] == [1, 1, 1]


@pytest.mark.asyncio
async def test_retry_returns_first_success() -> None:
    calls = 0

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ValueError(f"attempt {calls}")
        return "ok"

    assert await retry(5, flaky) == "ok"
    assert calls == 3


@pytest.mark.asyncio
async def test_retry_reraises_last_failure_unchanged() -> None:
    raised: list[RuntimeError] = []

    async def always_fails() -> None:
        exc = RuntimeError(f"failure {len(raised)}")
        raised.append(exc)
        raise exc

    with pytest.raises(RuntimeError) as exc_info:
        await retry(3, always_fails)
    assert len(raised) == 3
    assert exc_info.value is raised[-1]


@pytest.mark.asyncio
async def test_retry_waits_static_delay_between_attempts() -> None:
    calls = 0

    async def always_fails() -> None:
        nonlocal calls
        calls += 1
        raise ValueError("nope")

    started = time.monotonic()
    with pytest.raises(ValueError):
        await retry(3, "30ms", always_fails)
    assert calls == 3
    assert time.monotonic() - started >= 0.06


@pytest.mark.asyncio
async def test_retry_consumes_delay_generator_and_logs_attempts() -> None:
    events: list[dict[str, Any]] = []

    async def always_fails() -> None:
        raise ValueError("nope")

    with scoped(log=events.append, verbose=True):
        with pytest.raises(ValueError):
            await retry(3, iter([1, 2, 3]), always_fails)
    assert [event["kind"] for event in events] == ["retry", "retry", "retry"]
    assert [event["attempt"] for event in events] == [1, 2, 3]
    assert [event["delay"] for event in events] == [1, 2, 3]
    assert all(event["total"] == 3 for event in events)
    assert all(event["verbose"] is True for event in events)
    assert events[0]["error"] == " FAIL  Attempt: 1/3; next in 1ms"


@pytest.mark.asyncio
async def test_retry_unbounded_count_logs_without_total() -> None:
    events: list[dict[str, Any]] = []
    calls = 0

    async def flaky() -> int:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ValueError("first")
        return calls

    with scoped(log=events.append):
        assert await retry(math.inf, flaky) == 2
    assert events[0]["total"] is None
    assert events[0]["delay"] is None
    assert events[0]["error"] == " FAIL  Attempt: 1"


@pytest.mark.asyncio
async def test_retry_propagates_process_failure_from_tasks() -> None:
    with scoped(log=lambda event: None):
        with pytest.raises(ProcessFailure) as exc_info:
            await retry(2, lambda: sh("exit 6"))
    assert exc_info.value.exit_code == 6


@pytest.mark.asyncio
async def test_retry_requires_positive_count() -> None:
    async def never() -> None:
        raise AssertionError("must not run")

    with pytest.raises(ValueError):
        await retry(0, never)


@pytest.mark.asyncio
async def test_retry_delay_form_requires_action() -> None:
    with pytest.raises(TypeError):
        await retry(2, "10ms")


@pytest.mark.asyncio
async def test_sleep_accepts_duration_strings() -> None:
    started = time.monotonic()
    await sleep("20ms")
    assert time.monotonic() - started >= 0.015
