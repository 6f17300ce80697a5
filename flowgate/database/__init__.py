"""Database layer - SQLite persistence for items, tasks, projects and audit."""

from .sqlite import DBSession, SqliteDB

__all__ = ["DBSession", "SqliteDB"]
