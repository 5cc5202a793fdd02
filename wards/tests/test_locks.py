import threading
import time

import pytest

from wards.errors import ConflictError
from wards.services.locks import KeyedLock, allocation_key, patient_key, room_key


def test_key_helpers():
    assert (room_key(3), patient_key(7), allocation_key(12)) == ('room:3', 'patient:7', 'allocation:12')


def test_idle_keys_are_dropped():
    locks = KeyedLock()
    with locks.hold('room:1', 'patient:1'):
        assert len(locks) == 2
    assert len(locks) == 0


def test_duplicate_keys_held_once():
    locks = KeyedLock(timeout=0.5)
    with locks.hold('room:1', 'room:1'):
        assert len(locks) == 1


def test_busy_key_times_out_and_releases_the_rest():
    locks = KeyedLock(timeout=0.05)
    taken, done = threading.Event(), threading.Event()

    def holder():
        with locks.hold('room:2'):
            taken.set()
            done.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    assert taken.wait(5)
    try:
        with pytest.raises(ConflictError, match='room:2 is busy'):
            with locks.hold('room:1', 'room:2'):
                pass
        # room:1 was released when room:2 timed out.
        with locks.hold('room:1'):
            pass
    finally:
        done.set()
        t.join(5)
    assert len(locks) == 0


def test_overlapping_key_sets_do_not_deadlock():
    locks = KeyedLock(timeout=5)
    counter = {'n': 0}

    def worker(keys):
        for _ in range(200):
            with locks.hold(*keys):
                counter['n'] += 1

    threads = [
        threading.Thread(target=worker, args=(('room:1', 'patient:1'),)),
        threading.Thread(target=worker, args=(('patient:1', 'room:1'),)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)
    assert not any(t.is_alive() for t in threads)
    assert counter['n'] == 400


def test_zero_timeout_tries_once():
    locks = KeyedLock(timeout=0)
    taken, done = threading.Event(), threading.Event()

    def holder():
        with locks.hold('room:4'):
            taken.set()
            done.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    assert taken.wait(5)
    try:
        started = time.monotonic()
        with pytest.raises(ConflictError, match='room:4 is busy'):
            with locks.hold('room:4'):
                pass
        assert time.monotonic() - started < 1
    finally:
        done.set()
        t.join(5)
    with locks.hold('room:4'):
        pass
