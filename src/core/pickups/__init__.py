# src/core/pickups/__init__.py
"""Заявки на вывоз: модели, переходы статусов, хранилище и сервис."""

from src.core.pickups.models import (
    AssignDriverDTO,
    CancelPickupDTO,
    CompletePickupDTO,
    PickupCreateDTO,
    PickupRequest,
)
from src.core.pickups.repository import (
    InMemoryPickupRepository,
    PickupRepository,
    PostgresPickupRepository,
)
from src.core.pickups.service import (
    PickupService,
    calculate_payout,
    normalize_waste_types,
    validate_weights,
)
from src.core.pickups.state_machine import PickupStateMachine

__all__ = [
    "AssignDriverDTO",
    "CancelPickupDTO",
    "CompletePickupDTO",
    "PickupCreateDTO",
    "PickupRequest",
    "PickupRepository",
    "InMemoryPickupRepository",
    "PostgresPickupRepository",
    "PickupService",
    "PickupStateMachine",
    "calculate_payout",
    "normalize_waste_types",
    "validate_weights",
]
