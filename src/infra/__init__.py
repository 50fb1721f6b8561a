# src/infra/__init__.py
"""
Инфраструктурный слой.
PostgreSQL и примитивы синхронизации.
"""

from src.infra.database import DatabaseManager, init_db, close_db
from src.infra.locks import KeyedLocks

__all__ = [
    "DatabaseManager",
    "init_db",
    "close_db",
    "KeyedLocks",
]
