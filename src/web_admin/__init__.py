# src/web_admin/__init__.py
"""
Клиентская сторона админ-панели: HTTP-клиент Operations API и лента активности.
"""

from src.web_admin.activity_feed import ActivityFeed, describe
from src.web_admin.infra.api_clients import OperationsClient

__all__ = ["ActivityFeed", "OperationsClient", "describe"]
