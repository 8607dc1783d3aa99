import asyncio

import pytest

from supasync.tasks import TaskRunner


async def _value(value):
    await asyncio.sleep(0)
    return value


async def _boom():
    await asyncio.sleep(0)
    raise ValueError("boom")


@pytest.mark.asyncio
async def test_errors_reported_and_drained():
    runner = TaskRunner()
    errors = []

    ok = runner.run(_value(1))
    runner.run(_boom(), on_error=errors.append)
    assert runner.pending == 2

    await runner.drain()

    assert runner.pending == 0
    assert ok.result() == 1
    assert [str(exc) for exc in errors] == ["boom"]


@pytest.mark.asyncio
async def test_unhandled_error_does_not_escape_drain():
    runner = TaskRunner()
    runner.run(_boom())

    await runner.drain()

    assert runner.pending == 0
