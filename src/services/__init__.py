# src/services/__init__.py
"""
Сервисы приложения.

- operations_api: FastAPI-приложение (заявки, водители, настройки,
  журнал активности, сводка по парку)
- live_channel: рассылка событий журнала сессиям дашборда
"""

__all__: list[str] = []
