import threading
import time
from concurrent.futures import ThreadPoolExecutor

from event_checkin.core.locks import KeyedLock


def test_same_key_is_serialized():
    locks = KeyedLock()
    inside = []
    overlap = threading.Event()

    def work(_):
        with locks.hold("a@x.com"):
            if inside:
                overlap.set()
            inside.append(1)
            time.sleep(0.005)
            inside.pop()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(32)))

    assert not overlap.is_set()


def test_different_keys_do_not_block():
    locks = KeyedLock()
    with locks.hold("a@x.com"):
        done = threading.Event()

        def other():
            with locks.hold("b@x.com"):
                done.set()

        t = threading.Thread(target=other)
        t.start()
        assert done.wait(timeout=2)
        t.join()


def test_entries_are_released():
    locks = KeyedLock()
    with locks.hold("a@x.com"):
        assert len(locks) == 1
    assert len(locks) == 0
