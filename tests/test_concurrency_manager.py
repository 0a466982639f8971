import threading

import pytest

from edurecord.core.exceptions import ConcurrencyError, ValidationError
from edurecord.services.concurrency_manager import ConcurrencyManager


def test_lock_is_released_after_block():
    manager = ConcurrencyManager(lock_timeout=0.5)
    with manager.lock("course_CS101", "tester") as lock_id:
        assert manager.get_lock_info("course_CS101")[0].lock_id == lock_id
    assert manager.get_lock_info("course_CS101") == []
    assert manager.get_statistics()['held_locks'] == 0


def test_held_lock_times_out():
    manager = ConcurrencyManager(lock_timeout=0.05)
    acquired = threading.Event()
    release = threading.Event()

    def holder():
        with manager.lock("course_CS101"):
            acquired.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    acquired.wait(2)
    try:
        with pytest.raises(ConcurrencyError):
            manager.acquire_lock("course_CS101")
    finally:
        release.set()
        thread.join()
    assert manager.get_statistics()['timeouts'] == 1
    assert manager.get_statistics()['tracked_resources'] == 0


def test_retry_only_on_lock_conflicts():
    manager = ConcurrencyManager()
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConcurrencyError("busy")
        return "done"

    assert manager.execute_with_retry(flaky, max_retries=3, backoff_factor=0) == "done"
    assert manager.get_statistics()['retries'] == 2

    def invalid():
        calls.append(1)
        raise ValidationError("bad input")

    calls.clear()
    with pytest.raises(ValidationError):
        manager.execute_with_retry(invalid, max_retries=3, backoff_factor=0)
    assert len(calls) == 1


def test_retry_gives_up():
    manager = ConcurrencyManager()

    def always_busy():
        raise ConcurrencyError("busy")

    with pytest.raises(ConcurrencyError):
        manager.execute_with_retry(always_busy, max_retries=2, backoff_factor=0)


def test_release_unknown_lock():
    assert not ConcurrencyManager().release_lock("missing")


def test_released_resources_are_forgotten():
    manager = ConcurrencyManager(lock_timeout=0.5)
    for index in range(1000):
        with manager.lock(f"enrollment_{index}"):
            pass
    assert manager.get_statistics()['tracked_resources'] == 0


def test_waiter_keeps_resource_until_it_is_done():
    manager = ConcurrencyManager(lock_timeout=2.0)
    first_lock = manager.acquire_lock("enrollment_E1")
    waiting = threading.Event()
    acquired = []

    def waiter():
        waiting.set()
        with manager.lock("enrollment_E1") as lock_id:
            acquired.append(lock_id)

    thread = threading.Thread(target=waiter)
    thread.start()
    waiting.wait(2)
    manager.release_lock(first_lock)
    thread.join(5)

    assert len(acquired) == 1
    assert manager.get_statistics()['tracked_resources'] == 0
