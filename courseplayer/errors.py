from __future__ import annotations


class StoreError(Exception):
    """A persistence operation failed (I/O, corruption, constraint violation)."""


class StoreClosedError(StoreError):
    """The store was used before open() or after close()."""
