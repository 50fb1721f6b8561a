# src/services/operations_api/container.py
"""
Сборка зависимостей операционного ядра.

Контейнер создаётся в lifespan приложения и хранится в app.state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.common.constants import StorageBackend, TypeMsg
from src.common.logger import log_info
from src.core.activity import (
    ActivityJournal,
    ActivityLogRepository,
    InMemoryActivityLog,
    PostgresActivityLog,
)
from src.core.drivers import (
    DriverRepository,
    DriverService,
    InMemoryDriverRepository,
    PostgresDriverRepository,
)
from src.core.fleet import FleetService
from src.core.operational_settings import (
    InMemorySettingsRepository,
    PostgresSettingsRepository,
    SettingsRepository,
    SettingsStore,
)
from src.core.pickups import (
    InMemoryPickupRepository,
    PickupRepository,
    PickupService,
    PostgresPickupRepository,
)
from src.infra.database import DatabaseManager, close_db, init_db
from src.infra.locks import KeyedLocks
from src.services.live_channel import LiveChannelDistributor


@dataclass
class OperationsContainer:
    """Все сервисы одного процесса."""
    backend: StorageBackend
    activity_log: ActivityLogRepository
    distributor: LiveChannelDistributor
    journal: ActivityJournal
    drivers: DriverService
    pickups: PickupService
    settings_store: SettingsStore
    fleet: FleetService
    db: Optional[DatabaseManager] = None


def _wire(
    backend: StorageBackend,
    driver_repo: DriverRepository,
    pickup_repo: PickupRepository,
    activity_log: ActivityLogRepository,
    settings_repo: SettingsRepository,
    max_pending: int,
    db: Optional[DatabaseManager] = None,
) -> OperationsContainer:
    distributor = LiveChannelDistributor(max_pending=max_pending)
    journal = ActivityJournal(activity_log, distributor)
    locks = KeyedLocks()
    settings_store = SettingsStore(settings_repo, journal)

    return OperationsContainer(
        backend=backend,
        activity_log=activity_log,
        distributor=distributor,
        journal=journal,
        drivers=DriverService(driver_repo, journal, locks),
        pickups=PickupService(pickup_repo, driver_repo, journal, settings_store, locks),
        settings_store=settings_store,
        fleet=FleetService(driver_repo, pickup_repo),
        db=db,
    )


def build_memory_container(max_pending: int = 0, max_limit: Optional[int] = None) -> OperationsContainer:
    """Контейнер с хранилищами в памяти. Настройки нужно загрузить через load()."""
    from src.config import settings

    driver_repo = InMemoryDriverRepository()
    return _wire(
        StorageBackend.MEMORY,
        driver_repo=driver_repo,
        pickup_repo=InMemoryPickupRepository(driver_repo),
        activity_log=InMemoryActivityLog(max_limit or settings.activity.ACTIVITY_MAX_LIMIT),
        settings_repo=InMemorySettingsRepository(),
        max_pending=max_pending,
    )


async def build_container(backend: Optional[StorageBackend] = None) -> OperationsContainer:
    """
    Создаёт контейнер по настройкам и загружает операционные настройки.

    Args:
        backend: Хранилище; по умолчанию STORAGE_BACKEND из конфигурации
    """
    from src.config import settings

    backend = StorageBackend(backend or settings.storage.STORAGE_BACKEND)
    max_pending = settings.live_channel.LIVE_CHANNEL_MAX_PENDING

    if backend == StorageBackend.POSTGRES:
        db = DatabaseManager()
        await init_db(db)
        container = _wire(
            backend,
            driver_repo=PostgresDriverRepository(db),
            pickup_repo=PostgresPickupRepository(db),
            activity_log=PostgresActivityLog(db, settings.activity.ACTIVITY_MAX_LIMIT),
            settings_repo=PostgresSettingsRepository(db),
            max_pending=max_pending,
            db=db,
        )
    else:
        container = build_memory_container(max_pending=max_pending)

    await container.settings_store.load()
    await log_info(f"Контейнер операционного ядра собран ({backend.value})", type_msg=TypeMsg.INFO)
    return container


async def close_container(container: OperationsContainer) -> None:
    """Закрывает сессии live-канала и подключение к БД."""
    await container.distributor.close_all()
    if container.db is not None:
        await close_db(container.db)
