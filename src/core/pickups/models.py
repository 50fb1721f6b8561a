# src/core/pickups/models.py
"""
Модели данных заявок на вывоз.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import ACTIVE_ASSIGNMENT_STATUSES, OPEN_PICKUP_STATUSES, PickupStatus


class PickupRequest(BaseModel):
    """Заявка на вывоз отходов."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID заявки")
    requester_id: str = Field(..., description="ID заказчика")
    waste_types: list[str] = Field(..., min_length=1, description="Виды отходов (нижний регистр)")

    status: PickupStatus = Field(PickupStatus.PENDING, description="Статус заявки")
    assigned_driver_id: Optional[str] = Field(None, description="ID назначенного водителя")

    notes: Optional[str] = Field(None, description="Комментарий заказчика")
    address: Optional[str] = Field(None, description="Адрес вывоза")

    # Итоги вывоза
    collected_weight_by_type: Optional[dict[str, float]] = Field(None, description="Вес по видам, кг")
    actual_weight_kg: Optional[float] = Field(None, ge=0.0, description="Общий вес, кг")
    earned_amount: Optional[float] = Field(None, ge=0.0, description="Выплата за вывоз")
    cancellation_reason: Optional[str] = Field(None, description="Причина отмены")

    # Временные метки
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    collected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_open(self) -> bool:
        """Заявка ещё не завершена и не отменена."""
        return self.status in OPEN_PICKUP_STATUSES

    @property
    def occupies_driver(self) -> bool:
        """Назначенный водитель занят этой заявкой."""
        return self.status in ACTIVE_ASSIGNMENT_STATUSES


class PickupCreateDTO(BaseModel):
    """Данные для создания заявки."""

    requester_id: str
    waste_types: list[str]
    notes: Optional[str] = None
    address: Optional[str] = None


class AssignDriverDTO(BaseModel):
    driver_id: str


class CompletePickupDTO(BaseModel):
    collected_weight_by_type: dict[str, Any]


class CancelPickupDTO(BaseModel):
    reason: Optional[str] = None
