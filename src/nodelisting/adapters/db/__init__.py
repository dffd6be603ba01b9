from .sqlite_store import SQLiteNodeStore
from .sqlite_schema import ensure_schema

__all__ = ["SQLiteNodeStore", "ensure_schema"]
