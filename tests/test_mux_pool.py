import random
import threading
import time

import pytest

from connpool.mux_pool import MuxPool
from connpool.pool import PoolError


class _Case:
    def __init__(self, value):
        self.value = value


def _mark_closed(case):
    case.value = -1


def _build(init_cap, max_cap, closing=False):
    """Return a pool whose factory numbers its cases from 1, and the list of them."""
    created = []

    def new():
        case = _Case(len(created) + 1)
        created.append(case)
        return case

    pool = MuxPool(init_cap, max_cap, new)
    if closing:
        pool.close = _mark_closed
    return pool, created


def _settles(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_bad_settings_rejected():
    for init_cap, max_cap in ((0, 0), (3, 2), (-1, 2)):
        with pytest.raises(ValueError):
            MuxPool(init_cap, max_cap, lambda: object())
    with pytest.raises(PoolError):
        MuxPool(1, 1)
    with pytest.raises(PoolError):
        MuxPool(0, 1).get()


def test_mux_pool_scenario():
    pool, created = _build(2, 200, closing=True)
    pool.ping = lambda case: case.value != 0

    got = []
    new_count = 0
    for i in range(10):
        conn, is_new = pool.get()
        if i < 5:
            pool.block(conn)
        got.append(conn)
        new_count += is_new
    assert new_count == 4
    assert len(pool) == 6
    assert [case.value for case in got] == [1, 2, 3, 4, 5, 6, 6, 6, 6, 6]

    for i, conn in enumerate(got):
        if i < 3:
            conn.value = 0
        pool.put(conn)

    second = [pool.get() for _ in range(10)]
    assert not any(is_new for _, is_new in second)
    assert [conn.value for conn, _ in second] == [4, 4, 4, 4, 5, 4, 4, 4, 4, 5]
    assert len(pool) == 3
    assert created[0].value == 0

    pool.register_checker(0.001, lambda payload: False)
    assert _settles(lambda: len(pool) == 2)
    assert (created[5].value, created[3].value) == (-1, 4)

    pool.destroy()
    assert len(pool) == 0
    assert (created[3].value, created[4].value) == (-1, -1)

    pool.clear()
    assert len(pool) == 0


def test_mux_pool_grows_from_empty():
    pool, created = _build(0, 10)

    got = []
    for _ in range(10):
        conn, is_new = pool.get()
        assert is_new is True
        pool.block(conn)
        got.append(conn)
    assert [case.value for case in got] == list(range(1, 11))
    assert len(pool) == 10

    for conn in got:
        pool.put(conn)

    pool.register_checker(0.001, lambda payload: False)
    assert _settles(lambda: len(pool) == 0)

    assert pool.get() == (created[10], True)
    assert len(pool) == 1
    pool.destroy()


def test_mux_pool_concurrent_use():
    pool, created = _build(2, 10)
    rng = random.Random(7)
    plan = [(rng.random() * 0.02, rng.randrange(100) < 60) for _ in range(100)]

    def worker(delay, should_block):
        conn, _ = pool.get()
        if should_block:
            pool.block(conn)
        time.sleep(delay)
        pool.put(conn)

    threads = [threading.Thread(target=worker, args=step) for step in plan]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert 2 <= len(pool) <= 10
    conn, is_new = pool.get()
    assert is_new is False
    assert conn in created


def test_shared_connection_reused_without_block():
    pool, _ = _build(1, 2)
    first, _ = pool.get()
    assert pool.get() == (first, False)
    assert len(pool) == 1


@pytest.mark.parametrize("release_first", [True, False], ids=["put-then-block", "block-then-put"])
def test_released_connection_is_reused(release_first):
    pool, _ = _build(1, 2)
    conn, _ = pool.get()
    if release_first:
        pool.put(conn)
        pool.block(conn)
    else:
        pool.block(conn)
        pool.put(conn)
    assert pool.get() == (conn, False)


def test_blocked_connection_causes_new_one():
    pool, created = _build(1, 2)
    conn, _ = pool.get()
    pool.block(conn)
    assert pool.get() == (created[1], True)
    assert len(pool) == 2


def test_full_pool_hands_out_unpooled_connection():
    pool, created = _build(1, 1)
    conn, _ = pool.get()
    pool.block(conn)
    extra, is_new = pool.get()
    assert (extra, is_new) == (created[1], True)
    assert len(pool) == 1
    pool.put(extra)
    assert len(pool) == 1


def test_checker_skips_connections_in_use():
    pool, created = _build(2, 2, closing=True)
    held, _ = pool.get()
    pool.register_checker(0.001, lambda payload: False)
    assert _settles(lambda: len(pool) == 1)
    time.sleep(0.02)
    assert len(pool) == 1
    assert held.value != -1
    assert [case.value for case in created if case is not held] == [-1]
    pool.destroy()


def test_checker_drops_idle_connections():
    pool, created = _build(1, 2, closing=True)
    pool.idle = 0.01
    pool.register_checker(0.001, lambda payload: True)
    assert _settles(lambda: len(pool) == 0)
    assert created[0].value == -1

    assert pool.get() == (created[1], True)
    assert len(pool) == 1
    pool.destroy()


def test_destroy_then_get_returns_unpooled():
    pool, created = _build(2, 4, closing=True)
    pool.destroy()
    assert [case.value for case in created] == [-1, -1]
    assert pool.get() == (created[2], True)
    assert len(pool) == 0


def test_clear_then_get_pools_again():
    pool, created = _build(2, 4, closing=True)
    pool.clear()
    assert len(pool) == 0
    assert [case.value for case in created] == [-1, -1]
    conn, is_new = pool.get()
    assert is_new is True
    assert len(pool) == 1
    assert pool.get() == (conn, False)