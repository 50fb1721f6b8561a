# src/core/pickups/repository.py
"""
Репозиторий заявок на вывоз.

Переходы статусов записываются условно: запись проходит только если статус
в хранилище всё ещё равен ожидаемому. Назначение водителя и его освобождение
выполняются в той же атомарной операции, что и смена статуса заявки.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from src.common.constants import DriverAvailability, PickupStatus
from src.core.drivers.repository import InMemoryDriverRepository
from src.core.errors import DriverUnavailable, InvalidTransition, NotFound
from src.core.pickups.models import PickupRequest
from src.infra.database import DatabaseManager, storage_errors


class PickupRepository(ABC):
    """Интерфейс хранилища заявок."""

    @abstractmethod
    async def add(self, pickup: PickupRequest) -> PickupRequest: ...

    @abstractmethod
    async def get(self, pickup_id: str) -> Optional[PickupRequest]: ...

    @abstractmethod
    async def list(
        self,
        status: Optional[PickupStatus] = None,
        requester_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> list[PickupRequest]: ...

    @abstractmethod
    async def assign(self, pickup: PickupRequest) -> PickupRequest:
        """
        Записывает назначенную заявку и переводит водителя online -> busy.

        Args:
            pickup: Заявка в статусе assigned с заполненным assigned_driver_id

        Raises:
            InvalidTransition: заявка уже не в статусе pending
            DriverUnavailable: водитель уже не online
        """

    @abstractmethod
    async def advance(
        self,
        pickup: PickupRequest,
        expected: PickupStatus,
        release_driver_id: Optional[str] = None,
    ) -> PickupRequest:
        """
        Записывает заявку с новым статусом, если текущий равен expected.

        Args:
            pickup: Заявка после перехода
            expected: Статус, который должен быть в хранилище
            release_driver_id: Водитель, которого перевести busy -> online
                (у отменённой заявки assigned_driver_id уже пуст)

        Raises:
            InvalidTransition: статус в хранилище отличается от expected
        """


def _matches(
    pickup: PickupRequest,
    status: Optional[PickupStatus],
    requester_id: Optional[str],
    driver_id: Optional[str],
) -> bool:
    if status is not None and pickup.status != status:
        return False
    if requester_id is not None and pickup.requester_id != requester_id:
        return False
    if driver_id is not None and pickup.assigned_driver_id != driver_id:
        return False
    return True


class InMemoryPickupRepository(PickupRepository):
    """
    Заявки в памяти процесса.

    Использует хранилище водителей для атомарной смены их доступности:
    внутри одной операции нет точек переключения event loop.
    """

    def __init__(self, drivers: InMemoryDriverRepository) -> None:
        self._pickups: dict[str, PickupRequest] = {}
        self._drivers = drivers

    async def add(self, pickup: PickupRequest) -> PickupRequest:
        self._pickups[pickup.id] = pickup
        return pickup

    async def get(self, pickup_id: str) -> Optional[PickupRequest]:
        return self._pickups.get(pickup_id)

    async def list(
        self,
        status: Optional[PickupStatus] = None,
        requester_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> list[PickupRequest]:
        return sorted(
            (p for p in self._pickups.values() if _matches(p, status, requester_id, driver_id)),
            key=lambda p: p.created_at,
            reverse=True,
        )

    def _current(self, pickup_id: str) -> PickupRequest:
        current = self._pickups.get(pickup_id)
        if current is None:
            raise NotFound(f"Заявка {pickup_id} не найдена", {"pickup_id": pickup_id})
        return current

    async def assign(self, pickup: PickupRequest) -> PickupRequest:
        current = self._current(pickup.id)
        if current.status != PickupStatus.PENDING:
            raise InvalidTransition(current.status.value, pickup.status.value, pickup.id)

        driver_id = pickup.assigned_driver_id
        swapped = self._drivers.compare_and_set(
            driver_id,
            DriverAvailability.ONLINE,
            DriverAvailability.BUSY,
            pickup.updated_at,
        )
        if swapped is None:
            driver = await self._drivers.get(driver_id)
            raise DriverUnavailable(driver_id, driver.availability.value if driver else None)

        self._pickups[pickup.id] = pickup
        return pickup

    async def advance(
        self,
        pickup: PickupRequest,
        expected: PickupStatus,
        release_driver_id: Optional[str] = None,
    ) -> PickupRequest:
        current = self._current(pickup.id)
        if current.status != expected:
            raise InvalidTransition(current.status.value, pickup.status.value, pickup.id)

        if release_driver_id:
            self._drivers.compare_and_set(
                release_driver_id,
                DriverAvailability.BUSY,
                DriverAvailability.ONLINE,
                pickup.updated_at,
            )

        self._pickups[pickup.id] = pickup
        return pickup


_PICKUP_COLUMNS = """
    id, requester_id, waste_types, status, assigned_driver_id, notes, address,
    collected_weight_by_type, actual_weight_kg, earned_amount, cancellation_reason,
    created_at, updated_at, assigned_at, started_at, collected_at, cancelled_at
"""


class PostgresPickupRepository(PickupRepository):
    """Заявки в таблице pickups."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def add(self, pickup: PickupRequest) -> PickupRequest:
        with storage_errors("add pickup"):
            await self._db.execute(
                f"""
                INSERT INTO pickups ({_PICKUP_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11, $12, $13, $14, $15, $16, $17)
                """,
                *self._pickup_to_args(pickup),
            )
        return pickup

    async def get(self, pickup_id: str) -> Optional[PickupRequest]:
        with storage_errors("get pickup"):
            row = await self._db.fetchrow(
                f"SELECT {_PICKUP_COLUMNS} FROM pickups WHERE id = $1",
                pickup_id,
            )
        return self._row_to_pickup(row) if row else None

    async def list(
        self,
        status: Optional[PickupStatus] = None,
        requester_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> list[PickupRequest]:
        conditions: list[str] = []
        args: list[Any] = []

        if status is not None:
            args.append(status.value)
            conditions.append(f"status = ${len(args)}")
        if requester_id is not None:
            args.append(requester_id)
            conditions.append(f"requester_id = ${len(args)}")
        if driver_id is not None:
            args.append(driver_id)
            conditions.append(f"assigned_driver_id = ${len(args)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        with storage_errors("list pickups"):
            rows = await self._db.fetch(
                f"SELECT {_PICKUP_COLUMNS} FROM pickups {where} ORDER BY created_at DESC",
                *args,
            )
        return [self._row_to_pickup(row) for row in rows]

    async def assign(self, pickup: PickupRequest) -> PickupRequest:
        driver_id = pickup.assigned_driver_id

        with storage_errors("assign pickup"):
            async with self._db.transaction() as conn:
                await self._write_status(conn, pickup, PickupStatus.PENDING)

                acquired = await conn.fetchval(
                    """
                    UPDATE drivers SET availability = $3, updated_at = $4
                    WHERE id = $1 AND availability = $2
                    RETURNING id
                    """,
                    driver_id,
                    DriverAvailability.ONLINE.value,
                    DriverAvailability.BUSY.value,
                    pickup.updated_at,
                )
                if acquired is None:
                    availability = await conn.fetchval(
                        "SELECT availability FROM drivers WHERE id = $1",
                        driver_id,
                    )
                    # Исключение откатывает транзакцию вместе со сменой статуса заявки
                    raise DriverUnavailable(driver_id, availability)

        return pickup

    async def advance(
        self,
        pickup: PickupRequest,
        expected: PickupStatus,
        release_driver_id: Optional[str] = None,
    ) -> PickupRequest:
        with storage_errors("advance pickup"):
            async with self._db.transaction() as conn:
                await self._write_status(conn, pickup, expected)

                if release_driver_id:
                    await conn.execute(
                        """
                        UPDATE drivers SET availability = $3, updated_at = $4
                        WHERE id = $1 AND availability = $2
                        """,
                        release_driver_id,
                        DriverAvailability.BUSY.value,
                        DriverAvailability.ONLINE.value,
                        pickup.updated_at,
                    )

        return pickup

    async def _write_status(self, conn: Any, pickup: PickupRequest, expected: PickupStatus) -> None:
        """Условная запись заявки; InvalidTransition, если статус уже другой."""
        written = await conn.fetchval(
            """
            UPDATE pickups
            SET status = $2, assigned_driver_id = $3, collected_weight_by_type = $4::jsonb,
                actual_weight_kg = $5, earned_amount = $6, cancellation_reason = $7,
                updated_at = $8, assigned_at = $9, started_at = $10,
                collected_at = $11, cancelled_at = $12
            WHERE id = $1 AND status = $13
            RETURNING id
            """,
            pickup.id,
            pickup.status.value,
            pickup.assigned_driver_id,
            self._dump_weights(pickup.collected_weight_by_type),
            pickup.actual_weight_kg,
            pickup.earned_amount,
            pickup.cancellation_reason,
            pickup.updated_at,
            pickup.assigned_at,
            pickup.started_at,
            pickup.collected_at,
            pickup.cancelled_at,
            expected.value,
        )
        if written is None:
            current = await conn.fetchval("SELECT status FROM pickups WHERE id = $1", pickup.id)
            if current is None:
                raise NotFound(f"Заявка {pickup.id} не найдена", {"pickup_id": pickup.id})
            raise InvalidTransition(current, pickup.status.value, pickup.id)

    @staticmethod
    def _dump_weights(weights: Optional[dict[str, float]]) -> Optional[str]:
        return json.dumps(weights) if weights is not None else None

    def _pickup_to_args(self, pickup: PickupRequest) -> tuple[Any, ...]:
        return (
            pickup.id,
            pickup.requester_id,
            pickup.waste_types,
            pickup.status.value,
            pickup.assigned_driver_id,
            pickup.notes,
            pickup.address,
            self._dump_weights(pickup.collected_weight_by_type),
            pickup.actual_weight_kg,
            pickup.earned_amount,
            pickup.cancellation_reason,
            pickup.created_at,
            pickup.updated_at,
            pickup.assigned_at,
            pickup.started_at,
            pickup.collected_at,
            pickup.cancelled_at,
        )

    @staticmethod
    def _row_to_pickup(row: Any) -> PickupRequest:
        weights = row["collected_weight_by_type"]
        if isinstance(weights, str):
            weights = json.loads(weights)
        return PickupRequest(
            id=row["id"],
            requester_id=row["requester_id"],
            waste_types=list(row["waste_types"]),
            status=row["status"],
            assigned_driver_id=row["assigned_driver_id"],
            notes=row["notes"],
            address=row["address"],
            collected_weight_by_type=weights,
            actual_weight_kg=row["actual_weight_kg"],
            earned_amount=row["earned_amount"],
            cancellation_reason=row["cancellation_reason"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            assigned_at=row["assigned_at"],
            started_at=row["started_at"],
            collected_at=row["collected_at"],
            cancelled_at=row["cancelled_at"],
        )
