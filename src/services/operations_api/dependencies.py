# src/services/operations_api/dependencies.py
"""
Зависимости FastAPI для Operations API.
"""

from __future__ import annotations

from fastapi import Request, WebSocket

from src.core.activity import ActivityLogRepository
from src.core.drivers import DriverService
from src.core.fleet import FleetService
from src.core.operational_settings import SettingsStore
from src.core.pickups import PickupService
from src.services.live_channel import LiveChannelDistributor
from src.services.operations_api.container import OperationsContainer


def get_container(request: Request) -> OperationsContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("OperationsContainer не инициализирован")
    return container


def get_pickup_service(request: Request) -> PickupService:
    return get_container(request).pickups


def get_driver_service(request: Request) -> DriverService:
    return get_container(request).drivers


def get_settings_store(request: Request) -> SettingsStore:
    return get_container(request).settings_store


def get_activity_log(request: Request) -> ActivityLogRepository:
    return get_container(request).activity_log


def get_fleet_service(request: Request) -> FleetService:
    return get_container(request).fleet


def get_distributor(request: Request) -> LiveChannelDistributor:
    return get_container(request).distributor


def get_ws_distributor(websocket: WebSocket) -> LiveChannelDistributor:
    container = getattr(websocket.app.state, "container", None)
    if container is None:
        raise RuntimeError("OperationsContainer не инициализирован")
    return container.distributor
