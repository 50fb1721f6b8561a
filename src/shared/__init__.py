# src/shared/__init__.py
"""
Общий код между ядром, API и клиентом дашборда.

Модули:
- events: событие журнала активности
- models: общие модели ответов API
"""

__all__: list[str] = []
