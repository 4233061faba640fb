import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from threading import Lock


class _LockEntry:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = Lock()
        self.users = 0


class ImageLockRegistry:
    """
    Per-image mutual exclusion shared by every moderation writer. Thread
    locks are used because each request and background run has its own
    event loop. Entries live only while someone holds or waits on them.
    """

    def __init__(self, max_waiters: int = 32):
        self._locks = {}
        self._registry_lock = Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_waiters, thread_name_prefix='image-lock')

    def _checkout(self, image_id) -> _LockEntry:
        with self._registry_lock:
            entry = self._locks.get(image_id)
            if entry is None:
                entry = self._locks[image_id] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, image_id, entry: _LockEntry):
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[image_id]

    def _release(self, image_id, entry: _LockEntry):
        entry.lock.release()
        self._checkin(image_id, entry)

    def _abandon(self, image_id, entry: _LockEntry, acquire):
        # Runs once the abandoned acquire settles, on whichever thread finished it
        if not acquire.cancelled():
            entry.lock.release()
        self._checkin(image_id, entry)

    @asynccontextmanager
    async def hold(self, image_id):
        """Hold the image's lock for the duration of the block"""
        entry = self._checkout(image_id)
        acquire = self._executor.submit(entry.lock.acquire)
        try:
            await asyncio.wrap_future(acquire)
        except asyncio.CancelledError:
            # The worker may still get the lock after we stop waiting
            acquire.add_done_callback(lambda f: self._abandon(image_id, entry, f))
            raise
        try:
            yield
        finally:
            self._release(image_id, entry)
