"""Event repository interface and backends."""

from chronologicon.storage.factory import create_repository
from chronologicon.storage.interfaces import EventRepositoryInterface
from chronologicon.storage.memory import InMemoryEventRepository
from chronologicon.storage.sqlite import SQLiteEventRepository

__all__ = [
    "EventRepositoryInterface",
    "InMemoryEventRepository",
    "SQLiteEventRepository",
    "create_repository",
]
