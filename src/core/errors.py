# src/core/errors.py
"""
Типизированные ошибки операционного ядра.

Все ошибки доменных операций возвращаются вызывающему коду исключениями
этого модуля; HTTP-слой отображает их в ErrorResponse по полю code.
"""

from __future__ import annotations

from typing import Any


class OperationsError(Exception):
    """Базовая ошибка операционного ядра."""

    code: str = "OperationsError"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OperationsError):
    """Некорректные входные данные. Отклоняется до любых изменений."""

    code = "ValidationError"


class NotFound(OperationsError):
    """Сущность не найдена."""

    code = "NotFound"


class InvalidTransition(OperationsError):
    """Переход жизненного цикла недопустим из текущего состояния."""

    code = "InvalidTransition"

    def __init__(self, current: str, target: str, entity_id: str | None = None) -> None:
        super().__init__(
            f"Недопустимый переход {current} -> {target}",
            {"current": current, "target": target, "id": entity_id},
        )
        self.current = current
        self.target = target


class DriverUnavailable(OperationsError):
    """Водитель не в статусе online (или его уже занял другой запрос)."""

    code = "DriverUnavailable"

    def __init__(self, driver_id: str, availability: str | None = None) -> None:
        super().__init__(
            f"Водитель {driver_id} недоступен ({availability or 'unknown'})",
            {"driver_id": driver_id, "availability": availability},
        )
        self.driver_id = driver_id


class StorageUnavailable(OperationsError):
    """Хранилище (журнал событий, настройки, БД) недоступно."""

    code = "StorageUnavailable"
