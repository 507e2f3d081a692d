"""Tests for ReadWriteLock (puppetry/ident/rwlock.py)."""

from __future__ import annotations

import asyncio

import pytest

from puppetry.ident.rwlock import ReadWriteLock


class TestReadWriteLock:
    @pytest.mark.asyncio
    async def test_readers_share(self):
        lock = ReadWriteLock()
        inside = asyncio.Event()
        release = asyncio.Event()
        peak = 0

        async def reader():
            nonlocal peak
            async with lock.read():
                peak = max(peak, lock.readers)
                if lock.readers == 3:
                    inside.set()
                await release.wait()

        tasks = [asyncio.create_task(reader()) for _ in range(3)]
        await asyncio.wait_for(inside.wait(), 1)
        release.set()
        await asyncio.gather(*tasks)
        assert peak == 3
        assert lock.readers == 0

    @pytest.mark.asyncio
    async def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        order: list[str] = []
        release = asyncio.Event()

        async def reader():
            async with lock.read():
                order.append("read-start")
                await release.wait()
                order.append("read-end")

        async def writer():
            async with lock.write():
                order.append("write")

        r = asyncio.create_task(reader())
        await asyncio.sleep(0.01)
        w = asyncio.create_task(writer())
        await asyncio.sleep(0.01)
        assert order == ["read-start"]
        release.set()
        await asyncio.gather(r, w)
        assert order == ["read-start", "read-end", "write"]

    @pytest.mark.asyncio
    async def test_writers_exclusive(self):
        lock = ReadWriteLock()
        active = 0
        peak = 0

        async def writer():
            nonlocal active, peak
            async with lock.write():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                active -= 1

        await asyncio.gather(*(writer() for _ in range(10)))
        assert peak == 1
        assert not lock.writing

    @pytest.mark.asyncio
    async def test_reader_waits_for_writer(self):
        lock = ReadWriteLock()
        order: list[str] = []
        release = asyncio.Event()

        async def writer():
            async with lock.write():
                order.append("write-start")
                await release.wait()
                order.append("write-end")

        async def reader():
            async with lock.read():
                order.append("read")

        w = asyncio.create_task(writer())
        await asyncio.sleep(0.01)
        r = asyncio.create_task(reader())
        await asyncio.sleep(0.01)
        assert order == ["write-start"]
        release.set()
        await asyncio.gather(w, r)
        assert order == ["write-start", "write-end", "read"]

    @pytest.mark.asyncio
    async def test_released_after_exception(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            async with lock.write():
                raise RuntimeError("boom")
        async with lock.read():
            assert lock.readers == 1
