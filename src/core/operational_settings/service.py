# src/core/operational_settings/service.py
"""
Хранилище операционных настроек.

Чтение-изменение-запись сериализуется одной блокировкой. Прайс сливается
по записям, зоны заменяются целиком, поэтому параллельные правки разных
групп не затирают друг друга; в пределах группы побеждает последний.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from src.common.constants import ActivityAction, TypeMsg
from src.common.logger import log_error, log_info
from src.core.activity.journal import ActivityJournal
from src.core.errors import StorageUnavailable, ValidationError
from src.core.operational_settings.models import OperationalSettings
from src.core.operational_settings.repository import SettingsRepository
from src.shared.models.common import OperationResult


def validate_pricing(pricing: Any) -> dict[str, float]:
    """
    Проверяет записи прайса; ключи приводятся к нижнему регистру.

    Raises:
        ValidationError: пустой ключ, ставка не число / bool / отрицательная / не конечная
    """
    if not isinstance(pricing, Mapping):
        raise ValidationError("pricing должен быть объектом {вид: ставка}", {"pricing": pricing})

    result: dict[str, float] = {}
    for raw_key, rate in pricing.items():
        key = raw_key.strip().lower() if isinstance(raw_key, str) else ""
        if not key:
            raise ValidationError("Пустой вид отходов в прайсе", {"key": raw_key})
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            raise ValidationError(f"Ставка для '{key}' должна быть числом", {"key": key, "rate": rate})
        if not math.isfinite(rate) or rate < 0:
            raise ValidationError(f"Недопустимая ставка для '{key}': {rate}", {"key": key, "rate": rate})
        result[key] = float(rate)
    return result


def validate_zones(zones: Any) -> list[str]:
    """
    Проверяет список зон; метки обрезаются по краям.

    Raises:
        ValidationError: пустая метка или повтор после обрезки
    """
    if isinstance(zones, str) or not isinstance(zones, Sequence):
        raise ValidationError("zones должен быть списком строк", {"zones": zones})

    result: list[str] = []
    for raw in zones:
        label = raw.strip() if isinstance(raw, str) else ""
        if not label:
            raise ValidationError("Пустое название зоны", {"zone": raw})
        if label in result:
            raise ValidationError(f"Зона '{label}' указана дважды", {"zone": label})
        result.append(label)
    return result


class SettingsStore:
    """Единственная точка чтения и изменения операционных настроек."""

    def __init__(
        self,
        repo: SettingsRepository,
        journal: ActivityJournal,
        default_pricing: Optional[Mapping[str, float]] = None,
        default_zones: Optional[Sequence[str]] = None,
    ) -> None:
        self._repo = repo
        self._journal = journal
        self._lock = asyncio.Lock()
        self._snapshot: Optional[OperationalSettings] = None

        if default_pricing is None or default_zones is None:
            from src.config import settings

            default_pricing = settings.operations.DEFAULT_PRICING if default_pricing is None else default_pricing
            default_zones = settings.operations.DEFAULT_ZONES if default_zones is None else default_zones
        self._default_pricing = dict(default_pricing)
        self._default_zones = list(default_zones)

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    async def load(self) -> OperationalSettings:
        """
        Загружает сохранённый снимок; при первом запуске создаёт настройки по умолчанию.

        Raises:
            StorageUnavailable: хранилище недоступно
        """
        async with self._lock:
            snapshot = await self._repo.load()
            if snapshot is None:
                snapshot = OperationalSettings(
                    pricing=self._default_pricing,
                    zones=self._default_zones,
                    version=1,
                )
                await self._repo.save(snapshot)
                await log_info("Созданы операционные настройки по умолчанию", type_msg=TypeMsg.INFO)

            self._snapshot = snapshot
            return snapshot

    def get(self) -> OperationalSettings:
        """Текущий снимок настроек."""
        if self._snapshot is None:
            raise RuntimeError("Настройки не загружены. Вызовите load() сначала.")
        return self._snapshot

    async def update(
        self,
        pricing: Optional[Mapping[str, Any]] = None,
        zones: Optional[Sequence[Any]] = None,
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[OperationalSettings]:
        """
        Частичное обновление: записи прайса сливаются, зоны заменяются целиком.

        Raises:
            ValidationError: пустое обновление или некорректные значения
            StorageUnavailable: снимок не сохранён, текущие настройки не изменились
        """
        if pricing is None and zones is None:
            raise ValidationError("Пустое обновление настроек")

        new_pricing = validate_pricing(pricing) if pricing is not None else None
        new_zones = validate_zones(zones) if zones is not None else None

        changed: list[str] = []
        if new_pricing:
            changed.append("pricing")
        if new_zones is not None:
            changed.append("zones")
        if not changed:
            raise ValidationError("Пустое обновление настроек", {"pricing": pricing})

        async with self._lock:
            current = self.get()
            updated = current.model_copy(update={
                "pricing": {**current.pricing, **new_pricing} if new_pricing else current.pricing,
                "zones": new_zones if new_zones is not None else current.zones,
                "version": current.version + 1,
                "updated_at": datetime.now(timezone.utc),
            })

            try:
                await self._repo.save(updated)
            except StorageUnavailable as e:
                await log_error(f"Настройки не сохранены: {e}")
                raise

            self._snapshot = updated

            event = await self._journal.record(
                ActivityAction.SETTINGS_UPDATED,
                {"changed": changed, "version": updated.version},
                acting_user_id=acting_user_id,
            )

        await log_info(
            f"Настройки обновлены до версии {updated.version}: {', '.join(changed)}",
            type_msg=TypeMsg.INFO,
        )
        return OperationResult(value=updated, event=event, audit_complete=event is not None)
