# src/core/operational_settings/repository.py
"""
Хранение снимка операционных настроек (одна запись).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Optional

from src.core.operational_settings.models import OperationalSettings
from src.infra.database import DatabaseManager, storage_errors


class SettingsRepository(ABC):
    """Интерфейс хранилища настроек."""

    @abstractmethod
    async def load(self) -> Optional[OperationalSettings]:
        """Сохранённый снимок или None, если настройки ещё не создавались."""

    @abstractmethod
    async def save(self, snapshot: OperationalSettings) -> None:
        """
        Сохраняет снимок целиком.

        Raises:
            StorageUnavailable: хранилище недоступно
        """


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self, initial: Optional[OperationalSettings] = None) -> None:
        self._snapshot = initial

    async def load(self) -> Optional[OperationalSettings]:
        return self._snapshot

    async def save(self, snapshot: OperationalSettings) -> None:
        self._snapshot = snapshot


class PostgresSettingsRepository(SettingsRepository):
    """Настройки в таблице operational_settings (строка id = 1)."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def load(self) -> Optional[OperationalSettings]:
        with storage_errors("load settings"):
            row = await self._db.fetchrow(
                "SELECT pricing, zones, version, updated_at FROM operational_settings WHERE id = 1"
            )
        if row is None:
            return None

        pricing, zones = row["pricing"], row["zones"]
        if isinstance(pricing, str):
            pricing = json.loads(pricing)
        if isinstance(zones, str):
            zones = json.loads(zones)

        return OperationalSettings(
            pricing=pricing,
            zones=zones,
            version=row["version"],
            updated_at=row["updated_at"],
        )

    async def save(self, snapshot: OperationalSettings) -> None:
        with storage_errors("save settings"):
            await self._db.execute(
                """
                INSERT INTO operational_settings (id, pricing, zones, version, updated_at)
                VALUES (1, $1::jsonb, $2::jsonb, $3, $4)
                ON CONFLICT (id) DO UPDATE
                SET pricing = EXCLUDED.pricing,
                    zones = EXCLUDED.zones,
                    version = EXCLUDED.version,
                    updated_at = EXCLUDED.updated_at
                """,
                json.dumps(snapshot.pricing),
                json.dumps(snapshot.zones, ensure_ascii=False),
                snapshot.version,
                snapshot.updated_at,
            )
