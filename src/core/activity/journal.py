# src/core/activity/journal.py
"""
Журнал активности: запись события после коммита и публикация в live-канал.

Ошибка записи не откатывает уже применённое изменение; она возвращается
вызывающему коду флагом audit_complete=False. Событие, не попавшее в журнал,
в live-канал не публикуется.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from src.common.constants import ActivityAction, ActivityLevel
from src.common.logger import log_error, log_warning
from src.core.activity.repository import ActivityLogRepository
from src.core.errors import StorageUnavailable
from src.shared.events.activity import ACTION_LEVELS, ActivityEvent


class EventPublisher(Protocol):
    """Получатель новых событий журнала (live-канал)."""

    async def publish(self, event: ActivityEvent) -> int: ...


class ActivityJournal:
    """Точка записи событий для всех изменяющих операций."""

    def __init__(
        self,
        log: ActivityLogRepository,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._log = log
        self._publisher = publisher
        # append + publish под одной блокировкой: порядок канала = порядок журнала
        self._lock = asyncio.Lock()

    @property
    def log(self) -> ActivityLogRepository:
        return self._log

    async def record(
        self,
        action: ActivityAction,
        details: dict[str, Any],
        acting_user_id: str | None = None,
        level: ActivityLevel | None = None,
    ) -> ActivityEvent | None:
        """
        Записывает событие и рассылает его подписчикам.

        Returns:
            Сохранённое событие или None, если журнал недоступен
        """
        async with self._lock:
            # created_at ставится под блокировкой и растёт вместе с sequence
            event = ActivityEvent(
                action=action,
                details=details,
                acting_user_id=acting_user_id,
                level=level or ACTION_LEVELS.get(action, ActivityLevel.INFO),
            )

            try:
                stored = await self._log.append(event)
            except StorageUnavailable as e:
                await log_error(
                    f"Событие {action} не записано в журнал: {e}",
                    extra={"action": str(action), "details": details},
                )
                return None

            if self._publisher is not None:
                try:
                    await self._publisher.publish(stored)
                except Exception as e:
                    await log_warning(f"Ошибка публикации события {stored.id}: {e}")

        return stored
