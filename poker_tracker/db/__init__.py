"""Database module."""
from .connection import db, Database

__all__ = ["db", "Database"]
