"""Database module for Power Monitor."""

from pwrmon.db.base import Base, TimestampMixin
from pwrmon.db.engine import create_engine, create_tables, drop_tables, get_session

__all__ = ["Base", "TimestampMixin", "create_engine", "create_tables", "drop_tables", "get_session"]
