# src/core/operational_settings/__init__.py
"""Операционные настройки: прайс и зоны обслуживания."""

from src.core.operational_settings.models import OperationalSettings, SettingsUpdateDTO
from src.core.operational_settings.repository import (
    InMemorySettingsRepository,
    PostgresSettingsRepository,
    SettingsRepository,
)
from src.core.operational_settings.service import SettingsStore, validate_pricing, validate_zones

__all__ = [
    "OperationalSettings",
    "SettingsUpdateDTO",
    "SettingsRepository",
    "InMemorySettingsRepository",
    "PostgresSettingsRepository",
    "SettingsStore",
    "validate_pricing",
    "validate_zones",
]
