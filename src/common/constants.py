# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class PickupStatus(str, Enum):
    """Статусы заявки на вывоз."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COLLECTED = "collected"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class DriverAvailability(str, Enum):
    """Доступность водителя."""
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"

    def __str__(self) -> str:
        return self.value


class ActivityAction(str, Enum):
    """Виды событий журнала активности."""
    PICKUP_CREATED = "PICKUP_CREATED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    PICKUP_IN_PROGRESS = "PICKUP_IN_PROGRESS"
    PICKUP_COLLECTED = "PICKUP_COLLECTED"
    PICKUP_CANCELLED = "PICKUP_CANCELLED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    DRIVER_AVAILABILITY_CHANGED = "DRIVER_AVAILABILITY_CHANGED"

    def __str__(self) -> str:
        return self.value


class ActivityLevel(str, Enum):
    """Уровень важности события (для подсветки в ленте)."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class StorageBackend(str, Enum):
    """Поддерживаемые хранилища."""
    MEMORY = "memory"
    POSTGRES = "postgres"


# Статусы, в которых водитель занят заявкой
ACTIVE_ASSIGNMENT_STATUSES = frozenset({PickupStatus.ASSIGNED, PickupStatus.IN_PROGRESS})

# Статусы, в которых у заявки есть назначенный водитель
DRIVER_LINKED_STATUSES = frozenset({
    PickupStatus.ASSIGNED,
    PickupStatus.IN_PROGRESS,
    PickupStatus.COLLECTED,
})

# Незавершённые заявки
OPEN_PICKUP_STATUSES = frozenset({
    PickupStatus.PENDING,
    PickupStatus.ASSIGNED,
    PickupStatus.IN_PROGRESS,
})
