# src/shared/events/__init__.py
"""
События журнала активности.
"""

from src.shared.events.activity import ACTION_LEVELS, ActivityEvent

__all__ = [
    "ActivityEvent",
    "ACTION_LEVELS",
]
