# src/core/fleet/service.py
"""
Сводка по парку и заявкам для админ-панели.

Считается заново на каждый запрос по текущим коллекциям; кэша нет.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from src.common.constants import DriverAvailability, OPEN_PICKUP_STATUSES, PickupStatus
from src.core.drivers.models import Driver
from src.core.drivers.repository import DriverRepository
from src.core.pickups.models import PickupRequest
from src.core.pickups.repository import PickupRepository


class FleetSummary(BaseModel):
    """Агрегаты для обзорной панели."""

    online_driver_count: int = 0
    active_route_count: int = 0
    total_drivers: int = 0
    drivers_by_availability: dict[str, int] = Field(default_factory=dict)
    pickups_by_status: dict[str, int] = Field(default_factory=dict)
    open_pickup_count: int = 0
    completed_count: int = 0
    total_collected_kg: float = 0.0
    co2_saved_kg: float = 0.0


def summarize(
    drivers: Iterable[Driver],
    pickups: Iterable[PickupRequest],
    co2_per_kg: float,
) -> FleetSummary:
    """
    Чистая функция над текущими коллекциями.

    online_driver_count считает только availability = online (busy не входит);
    active_route_count считает заявки в статусе in_progress.
    """
    drivers = list(drivers)
    pickups = list(pickups)

    by_availability = Counter(d.availability.value for d in drivers)
    by_status = Counter(p.status.value for p in pickups)

    collected_kg = sum(
        p.actual_weight_kg or 0.0 for p in pickups if p.status == PickupStatus.COLLECTED
    )

    return FleetSummary(
        online_driver_count=by_availability.get(DriverAvailability.ONLINE.value, 0),
        active_route_count=by_status.get(PickupStatus.IN_PROGRESS.value, 0),
        total_drivers=len(drivers),
        drivers_by_availability={a.value: by_availability.get(a.value, 0) for a in DriverAvailability},
        pickups_by_status={s.value: by_status.get(s.value, 0) for s in PickupStatus},
        open_pickup_count=sum(by_status.get(s.value, 0) for s in OPEN_PICKUP_STATUSES),
        completed_count=by_status.get(PickupStatus.COLLECTED.value, 0),
        total_collected_kg=round(collected_kg, 3),
        co2_saved_kg=round(collected_kg * co2_per_kg, 3),
    )


class FleetService:
    """Сводка поверх репозиториев."""

    def __init__(
        self,
        drivers: DriverRepository,
        pickups: PickupRepository,
        co2_per_kg: Optional[float] = None,
    ) -> None:
        self._drivers = drivers
        self._pickups = pickups

        if co2_per_kg is None:
            from src.config import settings

            co2_per_kg = settings.operations.CO2_PER_KG
        self._co2_per_kg = co2_per_kg

    async def summary(self) -> FleetSummary:
        drivers = await self._drivers.list()
        pickups = await self._pickups.list()
        return summarize(drivers, pickups, self._co2_per_kg)
