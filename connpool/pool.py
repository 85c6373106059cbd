"""A bounded FIFO pool of reusable connections."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Optional, Tuple


class PoolError(Exception):
    """Raised when a pool cannot produce a connection."""


@dataclass(eq=False)
class _Item:
    conn: Any
    heartbeat: float = field(default_factory=time.monotonic)


class Pool:
    """Connections are handed out one caller at a time and returned with put().

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
        self._max_cap = max_cap
        self._lock = threading.Lock()
        self._store: Optional[Deque[_Item]] = deque()
        for _ in range(init_cap):
            self._store.append(_Item(self._create()))

    def __len__(self) -> int:
        with self._lock:
            return 0 if self._store is None else len(self._store)

    def _create(self) -> Any:
        if self.new is None:
            raise PoolError("no connection factory set, cannot create connection")
        return self.new()

    def _take(self) -> Optional[_Item]:
        with self._lock:
            if not self._store:
                return None
            return self._store.popleft()

    def _offer(self, item: _Item) -> bool:
        with self._lock:
            if self._store is None or len(self._store) >= self._max_cap:
                return False
            self._store.append(item)
            return True

    def _expired(self, item: _Item) -> bool:
        return self.idle > 0 and time.monotonic() - item.heartbeat > self.idle

    def _close(self, conn: Any) -> None:
        if self.close is not None:
            self.close(conn)

    def get(self) -> Tuple[Any, bool]:
        """Return ``(connection, is_new)``; a new one is created if none is usable."""
        while True:
            item = self._take()
            if item is None:
                return self._create(), True
            if self._expired(item):
                self._close(item.conn)
                continue
            if self.ping is not None and not self.ping(item.conn):
                continue
            return item.conn, False

    def put(self, conn: Any) -> None:
        """Return a connection; it is closed if the pool is full or destroyed."""
        if not self._offer(_Item(conn)):
            self._close(conn)

    def clear(self) -> None:
        """Close and drop every pooled connection."""
        while (item := self._take()) is not None:
            self._close(item.conn)

    def destroy(self) -> None:
        """Close every pooled connection and stop pooling."""
        with self._lock:
            if self._store is None:
                return
            items = list(self._store)
            self._store = None
        for item in items:
            self._close(item.conn)

    def register_checker(
        self, interval: float, check: Optional[Callable[[Any], bool]]
    ) -> None:
        """Every ``interval`` seconds drop idle connections and those failing ``check``."""
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
                pending = len(self._store)
            for _ in range(pending):
                item = self._take()
                if item is None:
                    break
                if self._expired(item) or not check(item.conn):
                    self._close(item.conn)
                elif not self._offer(item):
                    self._close(item.conn)