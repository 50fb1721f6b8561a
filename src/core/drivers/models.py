# src/core/drivers/models.py
"""
Модели данных водителей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import DriverAvailability


class Driver(BaseModel):
    """Водитель."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID водителя")
    name: str = Field(..., min_length=1, description="Имя")
    availability: DriverAvailability = Field(DriverAvailability.OFFLINE, description="Доступность")

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True

    @property
    def is_online(self) -> bool:
        return self.availability == DriverAvailability.ONLINE

    @property
    def is_busy(self) -> bool:
        return self.availability == DriverAvailability.BUSY


class DriverCreateDTO(BaseModel):
    """Регистрация водителя."""

    name: str


class AvailabilityUpdateDTO(BaseModel):
    """Ручное переключение доступности (только online/offline)."""

    availability: str
