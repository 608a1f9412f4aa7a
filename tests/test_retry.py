import asyncio
from unittest.mock import AsyncMock

import pytest

from core.retry import backoff_delay, with_retry

pytestmark = pytest.mark.asyncio


async def test_success_needs_no_sleep(recording_sleep):
    fn = AsyncMock(return_value="ok")

    assert await with_retry(fn, sleep=recording_sleep) == "ok"
    assert fn.await_count == 1
    assert recording_sleep.delays == []


async def test_recovers_after_failures(recording_sleep):
    fn = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])

    assert await with_retry(fn, max_retries=3, initial_delay=1.0, sleep=recording_sleep) == "ok"
    assert fn.await_count == 3
    assert recording_sleep.delays == [1.0, 2.0]


async def test_gives_up_after_max_retries(recording_sleep):
    fn = AsyncMock(side_effect=RuntimeError("down"))

    with pytest.raises(RuntimeError, match="down"):
        await with_retry(fn, max_retries=3, initial_delay=1.0, sleep=recording_sleep)

    assert fn.await_count == 4
    assert recording_sleep.delays == [1.0, 2.0, 4.0]


async def test_zero_retries_calls_once(recording_sleep):
    fn = AsyncMock(side_effect=RuntimeError("down"))

    with pytest.raises(RuntimeError):
        await with_retry(fn, max_retries=0, sleep=recording_sleep)

    assert fn.await_count == 1
    assert recording_sleep.delays == []


async def test_cancellation_is_not_retried(recording_sleep):
    fn = AsyncMock(side_effect=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await with_retry(fn, sleep=recording_sleep)

    assert fn.await_count == 1


@pytest.mark.parametrize("retry,expected", [(1, 0.5), (2, 1.0), (3, 2.0), (4, 4.0)])
async def test_backoff_doubles(retry, expected):
    assert backoff_delay(retry, 0.5) == expected
