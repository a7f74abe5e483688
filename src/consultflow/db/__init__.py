"""Database layer for consultflow (SQLAlchemy 2.0 async)."""

from __future__ import annotations

from consultflow.db.base import Base
from consultflow.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
