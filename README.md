# connpool

Two small, thread-safe, generic connection pools. A pool does not care what a
"connection" is. You give it a factory, which is a callable with no arguments,
and the pool hands back whatever that factory made. The package has no
dependencies outside the standard library.

- `connpool.pool.Pool` gives each connection to **one caller at a time**.
  `get()` takes a connection out of the pool, and `put()` returns it.
- `connpool.mux_pool.MuxPool` is for **multiplexed** connections, which several
  callers may share at once. It counts references per connection and steers
  callers away from connections that are marked as blocking. It stores at most
  `max_cap` connections.

## Installation

```
pip install .
```

## Exclusive pool

```python
from connpool.pool import Pool

pool = Pool(2, 10, make_connection)   # init_cap, max_cap, factory
pool.ping = lambda conn: conn.alive   # optional liveness test used by get()
pool.close = lambda conn: conn.close()
pool.idle = 30.0                      # seconds; 0 (the default) disables expiry

conn, is_new = pool.get()
try:
    ...
finally:
    pool.put(conn)

len(pool)                   # number of idle connections held
pool.register_checker(5.0, lambda conn: conn.alive)
pool.clear()                # close and drop every idle connection
pool.destroy()              # close every idle connection and stop pooling
```

How the pool behaves:

- `get()` returns `(connection, is_new)`. It takes idle connections oldest
  first. A connection idle for longer than `idle` seconds is closed and
  skipped. A connection that fails `ping` is dropped **without** being closed.
  When no usable connection is left, `get()` calls the factory and returns
  `is_new=True`.
- `put(conn)` stores the connection again and resets its idle timer. If the
  pool already holds `max_cap` connections, or it has been destroyed, the
  connection is closed instead.
- `register_checker(interval, check)` starts a daemon thread. Every `interval`
  seconds it closes and drops idle connections that have expired or fail
  `check`. It does nothing if `interval <= 0` or `check` is `None`. The thread
  stops after `destroy()`.
- After `destroy()`, `get()` still creates fresh connections, but `put()` closes
  them, so nothing is pooled any more.

## Multiplexing pool

```python
from connpool.mux_pool import MuxPool

mux = MuxPool(2, 200, make_connection)
mux.ping = lambda conn: conn.alive
mux.close = lambda conn: conn.close()
mux.idle = 60.0             # used only by the background checker

conn, is_new = mux.get()
mux.block(conn)             # mark as saturated; other callers are steered away
mux.put(conn)               # drop one reference; the block is lifted at zero

len(mux)                    # connections currently stored
mux.register_checker(1.0, lambda conn: conn.alive)
mux.clear()                 # close everything and start over empty
mux.destroy()               # close everything and stop pooling
```

How the pool behaves:

- `get()` returns `(connection, is_new)`. It looks through the stored
  connections, starting at a rotating position, and takes the first one that
  is either unused or not blocking. It increases that connection's reference
  count. A connection that fails `ping` is removed **without** being closed.
- When no stored connection fits, the pool calls the factory. Concurrent
  callers that arrive during the same creation share its result, and only the
  caller that ran the factory gets `is_new=True`. The new connection is stored
  if the pool has room. Otherwise it is handed out without being stored.
- `put(conn)` and `block(conn)` find the connection by identity (`is`). They
  ignore connections that the pool does not hold. `block` only has an effect
  on a connection that is currently in use.
- `register_checker(interval, check)` starts a daemon thread. Every `interval`
  seconds it removes and closes unused connections that have been idle longer
  than `idle` seconds or that fail `check`. Connections in use are never
  touched. The thread stops after `destroy()`.

## Errors

- Both constructors raise `ValueError` when `max_cap` is not positive,
  `init_cap` is negative, or `init_cap` exceeds `max_cap`.
- When a connection must be created and no factory is set, the pool raises
  `connpool.pool.PoolError`.
- Any exception raised by the factory reaches the caller, both from the
  constructor and from `get()`.

## What the package does not do

The pools only manage objects that your factory produces. They do not open
sockets, speak any protocol, or provide an async interface. Health checks run
only through `ping` and `register_checker`.

## Running the tests

```
pip install .[test]
pytest
```