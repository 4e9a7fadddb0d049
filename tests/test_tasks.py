"""
Tests for the fan-out/join helper.
"""

import asyncio

import pytest

from docsense.core.tasks import gather_all


async def test_returns_results_in_order():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert await gather_all(value("a", 0.02), value("b", 0)) == ["a", "b"]


async def test_failure_cancels_siblings():
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async def fail():
        await asyncio.sleep(0)
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await gather_all(slow(), fail())
    assert cancelled.is_set()
