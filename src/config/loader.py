# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секреты и адреса переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from src.common.constants import StorageBackend


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Путь к файлу конфигурации (можно переопределить через WASTE_OPS_CONFIG)."""
    override = os.getenv("WASTE_OPS_CONFIG")
    if override:
        return Path(override)
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без служебных _comment_ ключей."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "waste_ops"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_FORMAT: str = "colored"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только json и colored."""
        if v not in ("json", "colored"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class ApiSettings(BaseModel):
    """Настройки HTTP API операционного ядра."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 5000
    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


class LiveChannelSettings(BaseModel):
    """Настройки live-канала событий для дашборда."""
    LIVE_CHANNEL_ORIGIN: str = "http://localhost:5000"
    LIVE_CHANNEL_PATH: str = "/ws/activity"
    # 0 — без ограничения очереди сессии
    LIVE_CHANNEL_MAX_PENDING: int = 0

    @field_validator("LIVE_CHANNEL_MAX_PENDING")
    @classmethod
    def check_max_pending(cls, v: int) -> int:
        if v < 0:
            raise ValueError("LIVE_CHANNEL_MAX_PENDING не может быть отрицательным")
        return v

    @property
    def url(self) -> str:
        """Полный адрес websocket-канала для клиентов."""
        origin = self.LIVE_CHANNEL_ORIGIN.rstrip("/")
        if origin.startswith("https://"):
            origin = "wss://" + origin[len("https://"):]
        elif origin.startswith("http://"):
            origin = "ws://" + origin[len("http://"):]
        return f"{origin}{self.LIVE_CHANNEL_PATH}"


class StorageSettings(BaseModel):
    """Выбор хранилища."""
    STORAGE_BACKEND: StorageBackend = StorageBackend.MEMORY


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "waste_ops"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 10
    DB_COMMAND_TIMEOUT: int = 30
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class ActivitySettings(BaseModel):
    """Настройки выборки журнала активности."""
    ACTIVITY_DEFAULT_LIMIT: int = 20
    ACTIVITY_MAX_LIMIT: int = 100


class OperationsSettings(BaseModel):
    """Параметры операционного ядра."""
    # Ставка ($/кг) для типа отходов, которого нет в прайсе
    FALLBACK_RATE: float = 0.1
    # кг CO2 на кг переработанных отходов
    CO2_PER_KG: float = 1.5
    DEFAULT_PRICING: dict[str, float] = Field(default_factory=lambda: {
        "plastic": 0.5,
        "paper": 0.2,
        "glass": 0.1,
        "metal": 0.8,
        "ewaste": 1.5,
        "organic": 0.05,
    })
    DEFAULT_ZONES: list[str] = Field(default_factory=lambda: ["Downtown", "North Suburbs"])


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    live_channel: LiveChannelSettings = Field(default_factory=LiveChannelSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    activity: ActivitySettings = Field(default_factory=ActivitySettings)
    operations: OperationsSettings = Field(default_factory=OperationsSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Адреса и секреты переопределяются из переменных окружения.
        """
        data = load_config_json(path)
        operations_defaults = OperationsSettings()

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "waste_ops"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", data.get("LOG_LEVEL", "DEBUG")),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            api=ApiSettings(
                API_HOST=os.getenv("API_HOST", data.get("API_HOST", "0.0.0.0")),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 5000))),
                API_PREFIX=data.get("API_PREFIX", "/api/v1"),
                CORS_ORIGINS=data.get("CORS_ORIGINS", ["*"]),
            ),
            live_channel=LiveChannelSettings(
                LIVE_CHANNEL_ORIGIN=os.getenv(
                    "LIVE_CHANNEL_ORIGIN",
                    data.get("LIVE_CHANNEL_ORIGIN", "http://localhost:5000"),
                ),
                LIVE_CHANNEL_PATH=data.get("LIVE_CHANNEL_PATH", "/ws/activity"),
                LIVE_CHANNEL_MAX_PENDING=data.get("LIVE_CHANNEL_MAX_PENDING", 0),
            ),
            storage=StorageSettings(
                STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", data.get("STORAGE_BACKEND", "memory")),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "waste_ops")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 2),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 10),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 30),
                DB_RETRY_ATTEMPTS=data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=data.get("DB_RETRY_DELAY", 1.0),
            ),
            activity=ActivitySettings(
                ACTIVITY_DEFAULT_LIMIT=data.get("ACTIVITY_DEFAULT_LIMIT", 20),
                ACTIVITY_MAX_LIMIT=data.get("ACTIVITY_MAX_LIMIT", 100),
            ),
            operations=OperationsSettings(
                FALLBACK_RATE=data.get("FALLBACK_RATE", operations_defaults.FALLBACK_RATE),
                CO2_PER_KG=data.get("CO2_PER_KG", operations_defaults.CO2_PER_KG),
                DEFAULT_PRICING=data.get("DEFAULT_PRICING", operations_defaults.DEFAULT_PRICING),
                DEFAULT_ZONES=data.get("DEFAULT_ZONES", operations_defaults.DEFAULT_ZONES),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
