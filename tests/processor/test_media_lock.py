"""Tests for the per-media lock."""

import asyncio

import pytest

from processor.media_lock import MediaLockManager


@pytest.mark.unit
@pytest.mark.asyncio
class TestMediaLockManager:
    async def test_same_key_is_serialized(self, fake_store):
        locks = MediaLockManager(store=fake_store)
        events = []

        async def worker(name: str):
            async with locks.hold("movie:1"):
                events.append(f"{name}-enter")
                await asyncio.sleep(0.01)
                events.append(f"{name}-exit")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-enter", "a-exit", "b-enter", "b-exit"],
            ["b-enter", "b-exit", "a-enter", "a-exit"],
        )

    async def test_different_keys_run_concurrently(self):
        locks = MediaLockManager(distributed=False)
        both_inside = asyncio.Event()
        inside = 0

        async def worker(key: str):
            nonlocal inside
            async with locks.hold(key):
                inside += 1
                if inside == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1)

        await asyncio.gather(worker("movie:1"), worker("movie:2"))

        assert both_inside.is_set()

    async def test_lock_entries_are_dropped_after_release(self):
        locks = MediaLockManager(distributed=False)

        async with locks.hold("episode:7"):
            assert locks.is_locked("episode:7")

        assert not locks.is_locked("episode:7")
        assert locks._locks == {}
        assert locks._holders == {}

    async def test_released_on_exception(self):
        locks = MediaLockManager(distributed=False)

        with pytest.raises(RuntimeError):
            async with locks.hold("movie:1"):
                raise RuntimeError("boom")

        assert not locks.is_locked("movie:1")

    async def test_redis_lease_held_while_locked(self, fake_store, fake_redis_client):
        locks = MediaLockManager(store=fake_store, distributed=True)

        async with locks.hold("movie:1"):
            assert await fake_redis_client.exists("lock:media:movie:1") == 1
            assert await fake_redis_client.pttl("lock:media:movie:1") > 0

        assert await fake_redis_client.exists("lock:media:movie:1") == 0

    async def test_waits_for_lease_held_by_another_process(
        self, fake_store, fake_redis_client, monkeypatch
    ):
        from common.config import settings

        monkeypatch.setattr(settings, "media_lock_poll_interval", 0.01)
        await fake_redis_client.set("lock:media:movie:1", "other-process", px=60000)
        locks = MediaLockManager(store=fake_store, distributed=True)
        acquired = asyncio.Event()

        async def worker():
            async with locks.hold("movie:1"):
                acquired.set()

        task = asyncio.create_task(worker())
        await asyncio.sleep(0.05)
        assert not acquired.is_set()

        await fake_redis_client.delete("lock:media:movie:1")
        await asyncio.wait_for(task, timeout=1)
        assert acquired.is_set()

    async def test_foreign_lease_is_not_released(self, fake_store, fake_redis_client):
        locks = MediaLockManager(store=fake_store, distributed=True)

        async with locks.hold("movie:1"):
            # Lease expired and another process took it over
            await fake_redis_client.set("lock:media:movie:1", "other-process")

        assert await fake_redis_client.get("lock:media:movie:1") == "other-process"

    async def test_falls_back_to_local_lock_without_redis(self, disconnected_store):
        locks = MediaLockManager(store=disconnected_store, distributed=True)

        async with locks.hold("movie:1"):
            assert locks.is_locked("movie:1")
