"""Report storage (SQLAlchemy)."""

from relinfer.storage.base import Base, create_store_engine, init_database, reset_database

__all__ = [
    "Base",
    "create_store_engine",
    "init_database",
    "reset_database",
]
