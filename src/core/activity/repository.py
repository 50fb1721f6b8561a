# src/core/activity/repository.py
"""
Хранилище журнала активности (append-only).

Порядок вставки — канонический порядок журнала. recent() отдаёт события
от новых к старым с курсором before (id события или момент времени).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from src.common.constants import ActivityLevel
from src.core.errors import ValidationError
from src.infra.database import DatabaseManager, storage_errors
from src.shared.events.activity import ActivityEvent

# Курсор пагинации: id события, момент времени или None
Cursor = str | datetime | None


def _as_utc(moment: datetime) -> datetime:
    """Наивное время считаем UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ActivityLogRepository(ABC):
    """Интерфейс журнала активности."""

    def __init__(self, max_limit: int = 100) -> None:
        self._max_limit = max_limit

    def _bounded_limit(self, limit: int) -> int:
        if limit < 1:
            raise ValidationError("limit должен быть положительным", {"limit": limit})
        return min(limit, self._max_limit)

    @abstractmethod
    async def append(self, event: ActivityEvent) -> ActivityEvent:
        """
        Добавляет событие в конец журнала.

        Returns:
            Сохранённое событие с присвоенным sequence

        Raises:
            StorageUnavailable: хранилище недоступно
        """

    @abstractmethod
    async def recent(
        self,
        limit: int,
        before: Cursor = None,
        level: ActivityLevel | None = None,
    ) -> list[ActivityEvent]:
        """
        Последние события, от новых к старым.

        Args:
            limit: Максимум событий (ограничен сверху max_limit)
            before: Только события строго раньше этого id / момента времени
            level: Фильтр по уровню

        Raises:
            ValidationError: неизвестный id в курсоре или limit < 1
            StorageUnavailable: хранилище недоступно
        """


class InMemoryActivityLog(ActivityLogRepository):
    """Журнал в памяти процесса."""

    def __init__(self, max_limit: int = 100) -> None:
        super().__init__(max_limit)
        self._events: list[ActivityEvent] = []
        self._positions: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._events)

    async def append(self, event: ActivityEvent) -> ActivityEvent:
        stored = event.model_copy(update={"sequence": len(self._events) + 1})
        self._positions[stored.id] = len(self._events)
        self._events.append(stored)
        return stored

    async def recent(
        self,
        limit: int,
        before: Cursor = None,
        level: ActivityLevel | None = None,
    ) -> list[ActivityEvent]:
        limit = self._bounded_limit(limit)

        if isinstance(before, datetime):
            moment = _as_utc(before)
            candidates = [e for e in self._events if e.created_at < moment]
        elif before is not None:
            position = self._positions.get(before)
            if position is None:
                raise ValidationError(f"Неизвестный курсор: {before}", {"before": before})
            candidates = self._events[:position]
        else:
            candidates = self._events

        result: list[ActivityEvent] = []
        for event in reversed(candidates):
            if level is not None and event.level != level:
                continue
            result.append(event)
            if len(result) == limit:
                break
        return result


class PostgresActivityLog(ActivityLogRepository):
    """Журнал в таблице activity_log. Порядок задаёт BIGSERIAL sequence."""

    def __init__(self, db: DatabaseManager, max_limit: int = 100) -> None:
        super().__init__(max_limit)
        self._db = db

    async def append(self, event: ActivityEvent) -> ActivityEvent:
        with storage_errors("append activity"):
            sequence = await self._db.fetchval(
                """
                INSERT INTO activity_log (id, action, details, acting_user_id, level, created_at)
                VALUES ($1, $2, $3::jsonb, $4, $5, $6)
                RETURNING sequence
                """,
                event.id,
                event.action.value,
                json.dumps(event.details, ensure_ascii=False, default=str),
                event.acting_user_id,
                event.level.value,
                event.created_at,
            )
        return event.model_copy(update={"sequence": sequence})

    async def recent(
        self,
        limit: int,
        before: Cursor = None,
        level: ActivityLevel | None = None,
    ) -> list[ActivityEvent]:
        limit = self._bounded_limit(limit)

        conditions: list[str] = []
        args: list[Any] = []

        with storage_errors("read activity"):
            if isinstance(before, datetime):
                args.append(_as_utc(before))
                conditions.append(f"created_at < ${len(args)}")
            elif before is not None:
                cursor_sequence = await self._db.fetchval(
                    "SELECT sequence FROM activity_log WHERE id = $1",
                    before,
                )
                if cursor_sequence is None:
                    raise ValidationError(f"Неизвестный курсор: {before}", {"before": before})
                args.append(cursor_sequence)
                conditions.append(f"sequence < ${len(args)}")

            if level is not None:
                args.append(level.value)
                conditions.append(f"level = ${len(args)}")

            where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            args.append(limit)
            rows = await self._db.fetch(
                f"""
                SELECT sequence, id, action, details, acting_user_id, level, created_at
                FROM activity_log
                {where}
                ORDER BY sequence DESC
                LIMIT ${len(args)}
                """,
                *args,
            )

        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: Any) -> ActivityEvent:
        details = row["details"]
        if isinstance(details, str):
            details = json.loads(details)
        return ActivityEvent(
            id=row["id"],
            action=row["action"],
            details=details or {},
            acting_user_id=row["acting_user_id"],
            level=row["level"],
            sequence=row["sequence"],
            created_at=row["created_at"],
        )
