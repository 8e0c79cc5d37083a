"""Database connection and schema management."""

from autodidact.db.connection import create_connection

__all__ = ["create_connection"]
