#!/usr/bin/env python3
# main.py
"""
Точка входа операционного ядра.
Запускает Operations API (REST + live-канал) под uvicorn.
"""

from __future__ import annotations

import asyncio
import sys

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.config import settings


async def run_operations_api(host: str | None = None, port: int | None = None) -> None:
    """Запускает Operations API."""
    import uvicorn

    host = host or settings.api.API_HOST
    port = port or settings.api.API_PORT

    await log_info(
        f"Запуск Operations API на {host}:{port} (хранилище: {settings.storage.STORAGE_BACKEND.value})",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.operations_api.app:app",
        host=host,
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Operations API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def main(port: int | None = None) -> None:
    """Главная функция запуска."""
    setup_logging()

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} — запуск",
        type_msg=TypeMsg.INFO,
    )

    try:
        await run_operations_api(port=port)
    except KeyboardInterrupt:
        await log_info("Получен сигнал остановки (Ctrl+C)", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print(f"""
{settings.system.PROJECT_NAME} v{settings.system.VERSION} — операционное ядро сервиса вывоза отходов

Использование:
    python main.py [port]

Переменные окружения:
    STORAGE_BACKEND        — memory | postgres
    API_HOST, API_PORT     — адрес HTTP API
    DB_HOST, DB_PASSWORD   — подключение к PostgreSQL
    LIVE_CHANNEL_ORIGIN    — origin live-канала для клиентов
    """)


if __name__ == "__main__":
    cli_port: int | None = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        if not arg.isdigit():
            print(f"Некорректный порт: {arg}")
            print_usage()
            sys.exit(1)
        cli_port = int(arg)

    try:
        asyncio.run(main(cli_port))
    except KeyboardInterrupt:
        pass
