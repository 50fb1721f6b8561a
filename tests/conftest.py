# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Awaitable, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DB_PASSWORD", "test_password")

from src.core.activity import ActivityJournal, InMemoryActivityLog
from src.core.drivers import Driver, DriverService, InMemoryDriverRepository
from src.core.fleet import FleetService
from src.core.operational_settings import InMemorySettingsRepository, SettingsStore
from src.core.pickups import InMemoryPickupRepository, PickupService
from src.infra.locks import KeyedLocks
from src.services.live_channel import LiveChannelDistributor


DEFAULT_PRICING = {
    "plastic": 0.5,
    "paper": 0.2,
    "glass": 0.1,
    "metal": 0.8,
    "ewaste": 1.5,
    "organic": 0.05,
}
DEFAULT_ZONES = ["Downtown", "North Suburbs"]


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "служебный ключ",
        "PROJECT_NAME": "waste_ops_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_MAX_BYTES": 1048576,
        "API_HOST": "127.0.0.1",
        "API_PORT": 5050,
        "API_PREFIX": "/api/v1",
        "CORS_ORIGINS": ["http://localhost:5173"],
        "LIVE_CHANNEL_ORIGIN": "https://ops.example.com",
        "LIVE_CHANNEL_PATH": "/ws/activity",
        "LIVE_CHANNEL_MAX_PENDING": 500,
        "STORAGE_BACKEND": "memory",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "waste_ops_test",
        "DB_USER": "postgres",
        "DB_PASSWORD": "test_password",
        "ACTIVITY_DEFAULT_LIMIT": 10,
        "ACTIVITY_MAX_LIMIT": 50,
        "FALLBACK_RATE": 0.1,
        "CO2_PER_KG": 1.5,
        "DEFAULT_PRICING": DEFAULT_PRICING,
        "DEFAULT_ZONES": DEFAULT_ZONES,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


# =============================================================================
# ФИКСТУРЫ ЯДРА (В ПАМЯТИ)
# =============================================================================

@pytest.fixture
def activity_log() -> InMemoryActivityLog:
    return InMemoryActivityLog(max_limit=50)


@pytest.fixture
def distributor() -> LiveChannelDistributor:
    return LiveChannelDistributor()


@pytest.fixture
def journal(activity_log: InMemoryActivityLog, distributor: LiveChannelDistributor) -> ActivityJournal:
    return ActivityJournal(activity_log, distributor)


@pytest.fixture
def locks() -> KeyedLocks:
    return KeyedLocks()


@pytest.fixture
def driver_repo() -> InMemoryDriverRepository:
    return InMemoryDriverRepository()


@pytest.fixture
def pickup_repo(driver_repo: InMemoryDriverRepository) -> InMemoryPickupRepository:
    return InMemoryPickupRepository(driver_repo)


@pytest.fixture
def settings_repo() -> InMemorySettingsRepository:
    return InMemorySettingsRepository()


@pytest.fixture
def settings_store(settings_repo: InMemorySettingsRepository, journal: ActivityJournal) -> SettingsStore:
    """Хранилище настроек; перед использованием нужен await settings_store.load()."""
    return SettingsStore(
        settings_repo,
        journal,
        default_pricing=DEFAULT_PRICING,
        default_zones=DEFAULT_ZONES,
    )


@pytest.fixture
def driver_service(
    driver_repo: InMemoryDriverRepository,
    journal: ActivityJournal,
    locks: KeyedLocks,
) -> DriverService:
    return DriverService(driver_repo, journal, locks)


@pytest.fixture
def pickup_service(
    pickup_repo: InMemoryPickupRepository,
    driver_repo: InMemoryDriverRepository,
    journal: ActivityJournal,
    settings_store: SettingsStore,
    locks: KeyedLocks,
) -> PickupService:
    return PickupService(
        pickup_repo,
        driver_repo,
        journal,
        settings_store,
        locks,
        fallback_rate=0.1,
    )


@pytest.fixture
def fleet_service(
    driver_repo: InMemoryDriverRepository,
    pickup_repo: InMemoryPickupRepository,
) -> FleetService:
    return FleetService(driver_repo, pickup_repo, co2_per_kg=1.5)


@pytest.fixture
def online_driver(driver_service: DriverService) -> Callable[..., Awaitable[Driver]]:
    """Фабрика: регистрирует водителя и переводит его в online."""
    async def _make(name: str = "Олег") -> Driver:
        driver = await driver_service.register(name)
        result = await driver_service.set_availability(driver.id, "online")
        return result.value

    return _make


@pytest.fixture
def default_pricing() -> dict[str, float]:
    return dict(DEFAULT_PRICING)


@pytest.fixture
def default_zones() -> list[str]:
    return list(DEFAULT_ZONES)
