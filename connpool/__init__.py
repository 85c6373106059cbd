"""Thread-safe generic connection pools: exclusive (pool) and multiplexing (mux_pool)."""

__version__ = "0.1.0"
__all__ = ["mux_pool", "pool"]