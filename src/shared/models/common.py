# src/shared/models/common.py
"""
Общие модели для API и доменных операций.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from src.shared.events.activity import ActivityEvent


T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """
    Результат изменяющей операции.

    value — состояние после коммита. audit_complete=False означает, что
    изменение применено, но событие не попало в журнал.
    """

    value: T
    event: ActivityEvent | None = None
    audit_complete: bool = True


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    error_code: str
    message: str
    details: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
