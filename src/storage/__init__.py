"""Storage layer: asyncpg connection pool and table definitions."""

from src.storage.database import Database, lock_user
from src.storage.schema import init_schema

__all__ = ["Database", "init_schema", "lock_user"]
