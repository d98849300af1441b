"""
Factory for creating event repository backends from a database URL.
"""

import logging

from chronologicon.storage.interfaces import EventRepositoryInterface
from chronologicon.storage.memory import InMemoryEventRepository
from chronologicon.storage.sqlite import SQLiteEventRepository

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"
SQLITE_PREFIX = "sqlite:///"


def create_repository(database_url: str) -> EventRepositoryInterface:
    """
    Return a repository for ``database_url``.

    ``memory://`` gives an ``InMemoryEventRepository``; ``sqlite:///<path>``
    (or ``sqlite:///:memory:``) gives a ``SQLiteEventRepository``.
    """
    if database_url == MEMORY_URL:
        logger.info("Using in-memory event repository")
        return InMemoryEventRepository()
    if database_url.startswith(SQLITE_PREFIX):
        db_path = database_url[len(SQLITE_PREFIX) :].strip() or ":memory:"
        logger.info("Using SQLite event repository at %s", db_path)
        return SQLiteEventRepository(db_path)
    raise ValueError(f"Unsupported database URL scheme: {database_url!r}")
