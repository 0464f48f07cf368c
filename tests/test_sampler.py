import asyncio

import pytest

from rezolus.sampler import Sampler, refresh_all


class CountingSampler(Sampler):
    def __init__(self):
        self.calls = 0

    async def refresh(self):
        self.calls += 1


class WaitingSampler(Sampler):
    def __init__(self, wait_for, signal):
        self.wait_for = wait_for
        self.signal = signal
        self.done = False

    async def refresh(self):
        self.signal.set()
        await self.wait_for.wait()
        self.done = True


def test_sampler_is_abstract():
    with pytest.raises(TypeError):
        Sampler()


@pytest.mark.asyncio
async def test_refresh_all_refreshes_each_sampler():
    samplers = [CountingSampler() for _ in range(3)]
    await refresh_all(samplers)
    await refresh_all(samplers)
    assert [s.calls for s in samplers] == [2, 2, 2]


@pytest.mark.asyncio
async def test_refresh_all_runs_concurrently():
    first, second = asyncio.Event(), asyncio.Event()
    a = WaitingSampler(wait_for=second, signal=first)
    b = WaitingSampler(wait_for=first, signal=second)
    await asyncio.wait_for(refresh_all([a, b]), timeout=2)
    assert a.done and b.done


@pytest.mark.asyncio
async def test_refresh_all_propagates_errors():
    class Failing(Sampler):
        async def refresh(self):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await refresh_all([Failing()])