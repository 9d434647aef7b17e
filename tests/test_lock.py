"""
Tests for the transaction lock.
"""

from till_bridge.lock import TransactionLock


def test_second_lock_fails_until_unlocked():
    lock = TransactionLock()

    assert lock.lock() is True
    assert lock.lock() is False
    assert lock.is_locked()

    lock.unlock()
    assert not lock.is_locked()
    assert lock.lock() is True


def test_force_unlock():
    lock = TransactionLock()
    lock.lock()

    lock.force_unlock()

    assert not lock.is_locked()


def test_independent_instances():
    first, second = TransactionLock(), TransactionLock()

    assert first.lock()
    assert second.lock()


def test_guard_releases_only_when_acquired():
    lock = TransactionLock()

    with lock.guard() as acquired:
        assert acquired
        with lock.guard() as nested:
            assert not nested
        # The failed nested guard must not release the outer hold
        assert lock.is_locked()

    assert not lock.is_locked()


def test_guard_releases_on_exception():
    lock = TransactionLock()

    try:
        with lock.guard():
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert not lock.is_locked()
