# src/core/operational_settings/models.py
"""
Модели операционных настроек: прайс ($/кг по видам отходов) и зоны обслуживания.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationalSettings(BaseModel):
    """Снимок настроек. Меняется только через SettingsStore.update."""

    model_config = ConfigDict(frozen=True)

    pricing: dict[str, float] = Field(default_factory=dict, description="Ставка $/кг по виду отходов")
    zones: list[str] = Field(default_factory=list, description="Зоны обслуживания (порядок отображения)")
    version: int = Field(1, ge=1, description="Номер версии, растёт с каждым обновлением")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SettingsUpdateDTO(BaseModel):
    """
    Частичное обновление настроек.

    Значения не типизированы жёстко: проверка выполняется хранилищем,
    чтобы ошибки имели единый формат ValidationError.
    """

    pricing: Optional[dict[str, Any]] = None
    zones: Optional[list[Any]] = None
