# src/core/drivers/repository.py
"""
Репозиторий водителей.

Изменение доступности — условная запись (compare-and-swap): запись проходит
только если текущее значение совпадает с ожидаемым.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from src.common.constants import DriverAvailability
from src.core.drivers.models import Driver
from src.infra.database import DatabaseManager, storage_errors


class DriverRepository(ABC):
    """Интерфейс хранилища водителей."""

    @abstractmethod
    async def add(self, driver: Driver) -> Driver: ...

    @abstractmethod
    async def get(self, driver_id: str) -> Driver | None: ...

    @abstractmethod
    async def list(self) -> list[Driver]: ...

    @abstractmethod
    async def set_availability(
        self,
        driver_id: str,
        expected: DriverAvailability,
        target: DriverAvailability,
        now: datetime,
    ) -> Driver | None:
        """
        Меняет доступность, если текущая равна expected.

        Returns:
            Обновлённый водитель или None, если условие не выполнено
        """


class InMemoryDriverRepository(DriverRepository):
    """Водители в памяти процесса."""

    def __init__(self) -> None:
        self._drivers: dict[str, Driver] = {}

    async def add(self, driver: Driver) -> Driver:
        self._drivers[driver.id] = driver
        return driver

    async def get(self, driver_id: str) -> Driver | None:
        return self._drivers.get(driver_id)

    async def list(self) -> list[Driver]:
        return sorted(self._drivers.values(), key=lambda d: d.created_at)

    async def set_availability(
        self,
        driver_id: str,
        expected: DriverAvailability,
        target: DriverAvailability,
        now: datetime,
    ) -> Driver | None:
        return self.compare_and_set(driver_id, expected, target, now)

    def compare_and_set(
        self,
        driver_id: str,
        expected: DriverAvailability,
        target: DriverAvailability,
        now: datetime,
    ) -> Driver | None:
        """Синхронная CAS-запись; используется репозиторием заявок внутри одной операции."""
        current = self._drivers.get(driver_id)
        if current is None or current.availability != expected:
            return None
        updated = current.model_copy(update={"availability": target, "updated_at": now})
        self._drivers[driver_id] = updated
        return updated


class PostgresDriverRepository(DriverRepository):
    """Водители в таблице drivers."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, driver: Driver) -> Driver:
        with storage_errors("add driver"):
            await self._db.execute(
                """
                INSERT INTO drivers (id, name, availability, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5)
                """,
                driver.id,
                driver.name,
                driver.availability.value,
                driver.created_at,
                driver.updated_at,
            )
        return driver

    async def get(self, driver_id: str) -> Driver | None:
        with storage_errors("get driver"):
            row = await self._db.fetchrow(
                "SELECT id, name, availability, created_at, updated_at FROM drivers WHERE id = $1",
                driver_id,
            )
        return self.row_to_driver(row) if row else None

    async def list(self) -> list[Driver]:
        with storage_errors("list drivers"):
            rows = await self._db.fetch(
                "SELECT id, name, availability, created_at, updated_at FROM drivers ORDER BY created_at"
            )
        return [self.row_to_driver(row) for row in rows]

    async def set_availability(
        self,
        driver_id: str,
        expected: DriverAvailability,
        target: DriverAvailability,
        now: datetime,
    ) -> Driver | None:
        with storage_errors("set driver availability"):
            row = await self._db.fetchrow(
                """
                UPDATE drivers
                SET availability = $3, updated_at = $4
                WHERE id = $1 AND availability = $2
                RETURNING id, name, availability, created_at, updated_at
                """,
                driver_id,
                expected.value,
                target.value,
                now,
            )
        return self.row_to_driver(row) if row else None

    @staticmethod
    def row_to_driver(row: Any) -> Driver:
        return Driver(
            id=row["id"],
            name=row["name"],
            availability=row["availability"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
