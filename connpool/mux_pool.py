"""A pool whose connections are shared by many callers at once."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .pool import PoolError


@dataclass(eq=False)
class _MuxItem:
    conn: Any
    ref_count: int = 0
    blocking: bool = False
    heartbeat: float = field(default_factory=time.monotonic)


@dataclass(eq=False)
class _Call:
    done: threading.Event = field(default_factory=threading.Event)
    result: Any = None
    error: Optional[BaseException] = None


class _SingleFlight:
    """Lets concurrent callers share one in-flight invocation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._call: Optional[_Call] = None

    def do(self, fn: Callable[[], Any]) -> Tuple[Any, bool]:
        with self._lock:
            call = self._call
            leader = call is None
            if leader:
                call = self._call = _Call()
        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, False
        try:
            call.result = fn()
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._call = None
            call.done.set()
        return call.result, True


class MuxPool:
    """Hands the same connection to several callers until it is marked blocking.

    ``ping``, ``close`` and ``idle`` (seconds, 0 disables expiry) may be set
    after construction.
    """

    def __init__(
        self,
        init_cap: int,
        max_cap: int,
        new: Optional[Callable[[], Any]] = None,
    ) -> None:
        if max_cap <= 0 or init_cap < 0 or init_cap > max_cap:
            raise ValueError("invalid capacity settings")
        self.new = new
        self.ping: Optional[Callable[[Any], bool]] = None
        self.close: Optional[Callable[[Any], None]] = None
        self.idle: float = 0.0
        self._lock = threading.RLock()
        self._flight = _SingleFlight()
        self._max_cap = max_cap
        self._get_count = -1
        self._store: Optional[List[Optional[_MuxItem]]] = [None] * max_cap
        for index in range(init_cap):
            self._store[index] = _MuxItem(self._create())
        self._count = init_cap
        self._max_pos = init_cap - 1

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def _create(self) -> Any:
        if self.new is None:
            raise PoolError("no connection factory set, cannot create connection")
        return self.new()

    def _close(self, conn: Any) -> None:
        if self.close is not None:
            self.close(conn)

    def _remove(self, index: int) -> bool:
        if self._store is not None and self._store[index] is not None:
            self._store[index] = None
            self._count -= 1
            return True
        return False

    def _accepts(self, index: int, item: Optional[_MuxItem]) -> bool:
        if item is None:
            return False
        if self.ping is not None and not self.ping(item.conn):
            self._remove(index)
            return False
        # A blocking connection in use is saturated; prefer another one.
        return item.ref_count <= 0 or not item.blocking

    def _select(self) -> Optional[_MuxItem]:
        if self._count <= 0 or self._store is None:
            return None
        if self._max_pos == 0:
            item = self._store[0]
            return item if self._accepts(0, item) else None
        self._get_count += 1
        span = self._max_pos + 1
        start = self._get_count % self._max_pos
        for offset in range(span):
            index = (start + offset) % span
            item = self._store[index]
            if self._accepts(index, item):
                return item
        return None

    def _store_new(self, item: _MuxItem) -> None:
        if self._store is None or self._count >= self._max_cap:
            return
        grown = self._max_pos + 1
        if grown < self._max_cap and self._count > int(self._max_pos / 2):
            self._max_pos = grown
            self._store[grown] = item
            self._count += 1
            return
        for index, slot in enumerate(self._store):
            if slot is None:
                self._store[index] = item
                self._count += 1
                self._max_pos = max(self._max_pos, index)
                return

    def _create_and_store(self) -> _MuxItem:
        item = _MuxItem(self._create())
        with self._lock:
            self._store_new(item)
        return item

    def _find(self, conn: Any) -> Optional[_MuxItem]:
        return next(
            (it for it in self._store or () if it is not None and it.conn is conn),
            None,
        )

    def get(self) -> Tuple[Any, bool]:
        """Return ``(connection, is_new)``, creating one if none can take more load."""
        with self._lock:
            item = self._select()
            if item is not None:
                item.ref_count += 1
                return item.conn, False
        item, is_new = self._flight.do(self._create_and_store)
        with self._lock:
            item.ref_count += 1
        return item.conn, is_new

    def put(self, conn: Any) -> None:
        """Release one use of ``conn``; unknown connections are ignored."""
        with self._lock:
            item = self._find(conn)
            if item is None:
                return
            item.ref_count -= 1
            item.heartbeat = time.monotonic()
            if item.ref_count <= 0 and item.blocking:
                item.blocking = False

    def block(self, conn: Any) -> None:
        """Mark an in-use connection as saturated so others are preferred."""
        with self._lock:
            item = self._find(conn)
            if item is not None and item.ref_count > 0 and not item.blocking:
                item.blocking = True

    def clear(self) -> None:
        """Close every pooled connection and start over with an empty pool."""
        with self._lock:
            old = self._store or []
            self._store = [None] * self._max_cap
            self._count = 0
            self._max_pos = 0
            for item in old:
                if item is not None:
                    self._close(item.conn)

    def destroy(self) -> None:
        """Close every pooled connection and stop pooling."""
        with self._lock:
            self._max_pos = 0
            self._count = 0
            if self._store is None:
                return
            for item in self._store:
                if item is not None:
                    self._close(item.conn)
            self._store = None

    def register_checker(
        self, interval: float, check: Optional[Callable[[Any], bool]]
    ) -> None:
        """Every ``interval`` seconds drop unused connections that are idle or fail ``check``."""
        if interval > 0 and check is not None:
            threading.Thread(
                target=self._run_checker, args=(interval, check), daemon=True
            ).start()

    def _run_checker(self, interval: float, check: Callable[[Any], bool]) -> None:
        while True:
            time.sleep(interval)
            with self._lock:
                if self._store is None:
                    return
                for index, item in enumerate(self._store):
                    if index > self._max_pos:
                        break
                    if item is None or item.ref_count > 0:
                        continue
                    expired = (
                        self.idle > 0
                        and time.monotonic() - item.heartbeat > self.idle
                    )
                    if expired or not check(item.conn):
                        if item.ref_count > 0:
                            continue
                        self._remove(index)
                        self._close(item.conn)