#!/usr/bin/env python3
# entrypoint_operations_api.py
"""
Точка входа для контейнера Operations API.
Слушает все интерфейсы на API_PORT.
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

from main import run_operations_api
from src.common.logger import setup_logging


async def main() -> None:
    """Запуск Operations API в контейнере."""
    setup_logging()
    await run_operations_api(host="0.0.0.0")


if __name__ == "__main__":
    asyncio.run(main())
