"""Factory for the configured storage backend."""

import logging

from .base import BaseStore
from .memory import MemoryStore
from .sqlite import SQLiteStore

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "memory")


def create_store(backend: str = "sqlite", db_path: str | None = None) -> BaseStore:
    """Create the storage backend named in configuration.

    Args:
        backend: "sqlite" (persistent) or "memory" (ephemeral, tests and demo)
        db_path: SQLite database path. Ignored by the memory backend.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = (backend or "sqlite").lower()

    if backend == "memory":
        logger.warning("Using in-memory store, data will not survive a restart")
        return MemoryStore()

    if backend == "sqlite":
        return SQLiteStore(db_path=db_path)

    raise ValueError(f"Unknown store backend: {backend} (expected one of {', '.join(BACKENDS)})")
