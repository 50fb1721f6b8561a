# src/shared/events/activity.py
"""
Событие журнала активности.

Событие неизменяемо после записи. Ссылки на сущности хранятся только
идентификаторами в details, чтобы удаление сущности не ломало журнал.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import ActivityAction, ActivityLevel


class ActivityEvent(BaseModel):
    """Запись журнала активности."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    action: ActivityAction
    details: dict[str, Any] = Field(default_factory=dict)
    acting_user_id: str | None = None
    level: ActivityLevel = ActivityLevel.INFO
    # Порядковый номер в журнале; присваивается хранилищем при append
    sequence: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        """Сообщение live-канала для этого события."""
        return {"type": "activity", "event": self.model_dump(mode="json")}


# Уровень по умолчанию для каждого вида события
ACTION_LEVELS: dict[ActivityAction, ActivityLevel] = {
    ActivityAction.PICKUP_CREATED: ActivityLevel.INFO,
    ActivityAction.DRIVER_ASSIGNED: ActivityLevel.INFO,
    ActivityAction.PICKUP_IN_PROGRESS: ActivityLevel.INFO,
    ActivityAction.PICKUP_COLLECTED: ActivityLevel.SUCCESS,
    ActivityAction.PICKUP_CANCELLED: ActivityLevel.WARNING,
    ActivityAction.SETTINGS_UPDATED: ActivityLevel.INFO,
    ActivityAction.DRIVER_AVAILABILITY_CHANGED: ActivityLevel.INFO,
}
