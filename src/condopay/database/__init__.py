"""Database layer for condopay application."""

# Domain services import database.base, so the domain package loads first
import condopay.domain  # noqa: F401
from condopay.database.base import Database
from condopay.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
