# symptom_mem/storage/__init__.py

from .base import MemoryStore
from .sqlite_store import SqliteStore

__all__ = ["MemoryStore", "SqliteStore"]
