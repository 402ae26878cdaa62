"""Mutex-guarded access to the unlocked store."""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, Tuple, TypeVar

from .store import SecureStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionStore:
    """Serializes every store operation behind one lock.

    User-initiated edits wait for the lock (``run``); the alert path only
    tries it (``try_run``) and gives up when another operation holds it, so
    alert evaluation never blocks on a slow write.
    """

    def __init__(self, store: SecureStore):
        self._store = store
        self._lock = threading.Lock()

    @property
    def store(self) -> SecureStore:
        return self._store

    def _run_locked(self, operation: Callable[..., T], args: Tuple[Any, ...]) -> T:
        with self._lock:
            return operation(self._store, *args)

    async def run(self, operation: Callable[..., T], *args: Any) -> T:
        """Run ``operation(store, *args)`` once the lock is free.

        The wait and the operation happen in a worker thread so the event
        loop keeps drawing.

        Raises:
            StoreError: Whatever the operation raises
        """
        return await asyncio.to_thread(self._run_locked, operation, args)

    def _run_then_release(self, operation: Callable[..., T], args: Tuple[Any, ...]) -> T:
        try:
            return operation(self._store, *args)
        finally:
            self._lock.release()

    async def try_run(self, operation: Callable[..., T], *args: Any) -> Tuple[bool, Optional[T]]:
        """Run an operation only if the lock is immediately available.

        The lock is tried on the calling thread without waiting; once taken,
        the operation runs in a worker thread, which releases it.

        Returns:
            ``(ran, result)``; ``ran`` is False when the lock was busy
        """
        if not self._lock.acquire(blocking=False):
            logger.debug("Store busy, skipping non-blocking operation")
            return False, None
        return True, await asyncio.to_thread(self._run_then_release, operation, args)
