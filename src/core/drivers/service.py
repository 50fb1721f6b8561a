# src/core/drivers/service.py
"""
Сервис водителей: регистрация, чтение и ручное переключение доступности.

Статус busy выставляет и снимает только жизненный цикл заявки.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.common.constants import ActivityAction, DriverAvailability, TypeMsg
from src.common.logger import log_info
from src.core.activity.journal import ActivityJournal
from src.core.drivers.models import Driver
from src.core.drivers.repository import DriverRepository
from src.core.errors import InvalidTransition, NotFound, ValidationError
from src.infra.locks import KeyedLocks
from src.shared.models.common import OperationResult

# Значения, которые можно выставить вручную
MANUAL_AVAILABILITY = frozenset({DriverAvailability.ONLINE, DriverAvailability.OFFLINE})


def driver_lock_key(driver_id: str) -> str:
    return f"driver:{driver_id}"


def parse_manual_availability(value: str | DriverAvailability) -> DriverAvailability:
    """Разбирает значение доступности для ручного переключения."""
    try:
        availability = DriverAvailability(value)
    except ValueError:
        raise ValidationError(
            f"Неизвестная доступность: {value}",
            {"availability": str(value)},
        ) from None

    if availability not in MANUAL_AVAILABILITY:
        raise ValidationError(
            "Статус busy выставляется только назначением заявки",
            {"availability": availability.value},
        )
    return availability


class DriverService:
    """Реестр водителей."""

    def __init__(
        self,
        repo: DriverRepository,
        journal: ActivityJournal,
        locks: KeyedLocks,
    ) -> None:
        self._repo = repo
        self._journal = journal
        self._locks = locks

    async def register(self, name: str) -> Driver:
        """
        Регистрирует водителя. Новый водитель начинает в статусе offline.

        Raises:
            ValidationError: пустое имя
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Имя водителя не может быть пустым", {"name": name})

        driver = await self._repo.add(Driver(name=name.strip()))
        await log_info(f"Водитель {driver.id} зарегистрирован", type_msg=TypeMsg.INFO)
        return driver

    async def get(self, driver_id: str) -> Driver:
        driver = await self._repo.get(driver_id)
        if driver is None:
            raise NotFound(f"Водитель {driver_id} не найден", {"driver_id": driver_id})
        return driver

    async def list(self) -> list[Driver]:
        return await self._repo.list()

    async def set_availability(
        self,
        driver_id: str,
        availability: str | DriverAvailability,
        acting_user_id: str | None = None,
    ) -> OperationResult[Driver]:
        """
        Переключает водителя между online и offline.

        Raises:
            ValidationError: значение не online/offline
            NotFound: водитель не найден
            InvalidTransition: водитель занят заявкой
        """
        target = parse_manual_availability(availability)

        async with self._locks.hold(driver_lock_key(driver_id)):
            driver = await self.get(driver_id)

            if driver.is_busy:
                raise InvalidTransition(driver.availability.value, target.value, driver_id)
            if driver.availability == target:
                return OperationResult(value=driver)

            updated = await self._repo.set_availability(
                driver_id,
                expected=driver.availability,
                target=target,
                now=datetime.now(timezone.utc),
            )
            if updated is None:
                # Доступность изменил другой процесс между чтением и записью
                current = await self.get(driver_id)
                raise InvalidTransition(current.availability.value, target.value, driver_id)

            event = await self._journal.record(
                ActivityAction.DRIVER_AVAILABILITY_CHANGED,
                {
                    "driver_id": driver_id,
                    "previous": driver.availability.value,
                    "availability": target.value,
                },
                acting_user_id=acting_user_id,
            )
        return OperationResult(value=updated, event=event, audit_complete=event is not None)
