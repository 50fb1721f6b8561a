# src/core/activity/__init__.py
"""Журнал активности: хранилище событий и запись после коммита."""

from src.core.activity.journal import ActivityJournal, EventPublisher
from src.core.activity.repository import (
    ActivityLogRepository,
    InMemoryActivityLog,
    PostgresActivityLog,
)

__all__ = [
    "ActivityJournal",
    "EventPublisher",
    "ActivityLogRepository",
    "InMemoryActivityLog",
    "PostgresActivityLog",
]
