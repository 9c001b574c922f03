"""Storage backends for readings, alerts and patient records.

One interface (BaseStore) with two implementations, chosen at startup:
- MemoryStore for tests and demo mode
- SQLiteStore for persistent storage
"""

from .base import BaseStore
from .memory import MemoryStore
from .sqlite import SQLiteStore
from .factory import create_store

__all__ = [
    "BaseStore",
    "MemoryStore",
    "SQLiteStore",
    "create_store",
]
