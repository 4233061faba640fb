import asyncio
import time

import pytest

from image_moderation.services.moderation.image_locks import ImageLockRegistry


def _wait_until_empty(locks, timeout=2.0):
    deadline = time.time() + timeout
    while locks._locks and time.time() < deadline:
        time.sleep(0.01)
    return not locks._locks


def test_holds_are_serialized_per_image():
    locks = ImageLockRegistry()
    order = []

    async def worker(name):
        async with locks.hold(1):
            order.append(f'{name}-in')
            await asyncio.sleep(0.02)
            order.append(f'{name}-out')

    async def scenario():
        await asyncio.gather(worker('a'), worker('b'))

    asyncio.run(scenario())

    assert order in (['a-in', 'a-out', 'b-in', 'b-out'], ['b-in', 'b-out', 'a-in', 'a-out'])


def test_different_images_do_not_block_each_other():
    locks = ImageLockRegistry()

    async def scenario():
        async with locks.hold(1):
            await asyncio.wait_for(_enter(locks, 2), 1.0)

    asyncio.run(scenario())


async def _enter(locks, image_id):
    async with locks.hold(image_id):
        pass


def test_registry_forgets_released_images():
    locks = ImageLockRegistry()

    async def scenario():
        for image_id in range(50):
            await _enter(locks, image_id)

    asyncio.run(scenario())

    assert locks._locks == {}


def test_cancelled_waiter_does_not_keep_the_lock():
    locks = ImageLockRegistry()

    async def scenario():
        release = asyncio.Event()

        async def holder():
            async with locks.hold(1):
                await release.wait()

        holder_task = asyncio.create_task(holder())
        await asyncio.sleep(0.05)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(_enter(locks, 1), 0.05)

        release.set()
        await holder_task

        # The abandoned acquire must give the lock back once it lands
        await asyncio.wait_for(_enter(locks, 1), 2.0)

    asyncio.run(scenario())

    assert _wait_until_empty(locks)
