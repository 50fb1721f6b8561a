# src/core/drivers/__init__.py
"""Реестр водителей."""

from src.core.drivers.models import AvailabilityUpdateDTO, Driver, DriverCreateDTO
from src.core.drivers.repository import (
    DriverRepository,
    InMemoryDriverRepository,
    PostgresDriverRepository,
)
from src.core.drivers.service import (
    MANUAL_AVAILABILITY,
    DriverService,
    driver_lock_key,
    parse_manual_availability,
)

__all__ = [
    "AvailabilityUpdateDTO",
    "Driver",
    "DriverCreateDTO",
    "DriverRepository",
    "InMemoryDriverRepository",
    "PostgresDriverRepository",
    "DriverService",
    "driver_lock_key",
    "parse_manual_availability",
    "MANUAL_AVAILABILITY",
]
