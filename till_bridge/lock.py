"""
Transaction lock.

At most one drawer operation may be in flight. The lock never times out:
whoever acquires it releases it, normally in a ``finally`` block.
"""

import logging
from contextlib import contextmanager

logger = logging.getLogger('till.bridge.lock')


class TransactionLock:
    """Non-blocking mutual exclusion flag for drawer operations."""

    def __init__(self):
        self._locked = False

    def lock(self) -> bool:
        """Try to acquire the lock. Returns False if already held."""
        if self._locked:
            logger.warning("Transaction already in progress")
            return False

        self._locked = True
        logger.debug("Transaction lock acquired")
        return True

    def unlock(self):
        self._locked = False
        logger.debug("Transaction lock released")

    def is_locked(self) -> bool:
        return self._locked

    def force_unlock(self):
        """Release regardless of owner. For error recovery only."""
        if self._locked:
            logger.warning("Transaction lock force-released")
        self._locked = False

    @contextmanager
    def guard(self):
        """
        Yield whether the lock was acquired; release on exit if it was.

            with lock.guard() as acquired:
                if not acquired:
                    return
                ...
        """
        acquired = self.lock()
        try:
            yield acquired
        finally:
            if acquired:
                self.unlock()
