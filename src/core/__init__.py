# src/core/__init__.py
"""
Доменный слой (Core Domain).
Жизненный цикл заявок, водители, журнал активности, агрегаты и настройки.
"""
