# src/services/operations_api/routes.py
"""
REST-эндпоинты Operations API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from src.common.constants import ActivityLevel, PickupStatus
from src.config import settings
from src.core.activity import ActivityLogRepository
from src.core.drivers import AvailabilityUpdateDTO, Driver, DriverCreateDTO, DriverService
from src.core.errors import ValidationError
from src.core.fleet import FleetService, FleetSummary
from src.core.operational_settings import OperationalSettings, SettingsStore, SettingsUpdateDTO
from src.core.pickups import (
    AssignDriverDTO,
    CancelPickupDTO,
    CompletePickupDTO,
    PickupCreateDTO,
    PickupRequest,
    PickupService,
)
from src.services.operations_api.dependencies import (
    get_activity_log,
    get_driver_service,
    get_fleet_service,
    get_pickup_service,
    get_settings_store,
)
from src.shared.events.activity import ActivityEvent
from src.shared.models.common import ErrorResponse, OperationResult

# Заголовок: изменение применено, но событие не попало в журнал
AUDIT_TRAIL_HEADER = "X-Audit-Trail"

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Сущность не найдена"},
    409: {"model": ErrorResponse, "description": "Недопустимый переход или водитель недоступен"},
    422: {"model": ErrorResponse, "description": "Некорректные данные"},
    503: {"model": ErrorResponse, "description": "Хранилище недоступно"},
}


def _unwrap(result: OperationResult, response: Response):
    """Значение операции; при неполном журнале добавляет заголовок."""
    if not result.audit_complete:
        response.headers[AUDIT_TRAIL_HEADER] = "incomplete"
    return result.value


# =============================================================================
# ЗАЯВКИ
# =============================================================================

pickups_router = APIRouter(prefix="/pickups", tags=["Pickups"], responses=ERROR_RESPONSES)


@pickups_router.post("", response_model=PickupRequest, status_code=status.HTTP_201_CREATED)
async def create_pickup(
    request: PickupCreateDTO,
    response: Response,
    service: PickupService = Depends(get_pickup_service),
):
    result = await service.create(
        requester_id=request.requester_id,
        waste_types=request.waste_types,
        notes=request.notes,
        address=request.address,
    )
    return _unwrap(result, response)


@pickups_router.get("", response_model=list[PickupRequest])
async def list_pickups(
    status_filter: Optional[PickupStatus] = Query(None, alias="status"),
    requester_id: Optional[str] = None,
    driver_id: Optional[str] = None,
    service: PickupService = Depends(get_pickup_service),
):
    return await service.list(status=status_filter, requester_id=requester_id, driver_id=driver_id)


@pickups_router.get("/{pickup_id}", response_model=PickupRequest)
async def get_pickup(
    pickup_id: str,
    service: PickupService = Depends(get_pickup_service),
):
    return await service.get(pickup_id)


@pickups_router.post("/{pickup_id}/assign", response_model=PickupRequest)
async def assign_driver(
    pickup_id: str,
    request: AssignDriverDTO,
    response: Response,
    service: PickupService = Depends(get_pickup_service),
):
    return _unwrap(await service.assign(pickup_id, request.driver_id), response)


@pickups_router.post("/{pickup_id}/start", response_model=PickupRequest)
async def start_route(
    pickup_id: str,
    response: Response,
    service: PickupService = Depends(get_pickup_service),
):
    return _unwrap(await service.start_route(pickup_id), response)


@pickups_router.post("/{pickup_id}/complete", response_model=PickupRequest)
async def complete_pickup(
    pickup_id: str,
    request: CompletePickupDTO,
    response: Response,
    service: PickupService = Depends(get_pickup_service),
):
    return _unwrap(await service.complete(pickup_id, request.collected_weight_by_type), response)


@pickups_router.post("/{pickup_id}/cancel", response_model=PickupRequest)
async def cancel_pickup(
    pickup_id: str,
    response: Response,
    request: Optional[CancelPickupDTO] = None,
    service: PickupService = Depends(get_pickup_service),
):
    reason = request.reason if request else None
    return _unwrap(await service.cancel(pickup_id, reason), response)


# =============================================================================
# ВОДИТЕЛИ
# =============================================================================

drivers_router = APIRouter(prefix="/drivers", tags=["Drivers"], responses=ERROR_RESPONSES)


@drivers_router.post("", response_model=Driver, status_code=status.HTTP_201_CREATED)
async def register_driver(
    request: DriverCreateDTO,
    service: DriverService = Depends(get_driver_service),
):
    return await service.register(request.name)


@drivers_router.get("", response_model=list[Driver])
async def list_drivers(service: DriverService = Depends(get_driver_service)):
    return await service.list()


@drivers_router.get("/{driver_id}", response_model=Driver)
async def get_driver(
    driver_id: str,
    service: DriverService = Depends(get_driver_service),
):
    return await service.get(driver_id)


@drivers_router.put("/{driver_id}/availability", response_model=Driver)
async def set_driver_availability(
    driver_id: str,
    request: AvailabilityUpdateDTO,
    response: Response,
    service: DriverService = Depends(get_driver_service),
):
    return _unwrap(await service.set_availability(driver_id, request.availability), response)


# =============================================================================
# НАСТРОЙКИ
# =============================================================================

settings_router = APIRouter(prefix="/settings", tags=["Settings"], responses=ERROR_RESPONSES)


@settings_router.get("", response_model=OperationalSettings)
async def get_operational_settings(store: SettingsStore = Depends(get_settings_store)):
    return store.get()


@settings_router.put("", response_model=OperationalSettings)
async def update_operational_settings(
    request: SettingsUpdateDTO,
    response: Response,
    store: SettingsStore = Depends(get_settings_store),
):
    result = await store.update(pricing=request.pricing, zones=request.zones)
    return _unwrap(result, response)


# =============================================================================
# ЖУРНАЛ АКТИВНОСТИ
# =============================================================================

class ActivityPage(BaseModel):
    """Страница журнала, от новых к старым."""
    items: list[ActivityEvent]
    # Курсор для следующей страницы; None — событий больше нет
    next_before: Optional[str] = None


def parse_cursor(before: Optional[str]) -> str | datetime | None:
    """
    Курсор before: UUID события или момент времени ISO 8601.

    Raises:
        ValidationError: ни то, ни другое
    """
    if before is None or not before.strip():
        return None
    before = before.strip()

    try:
        return str(UUID(before))
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(before.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Некорректный курсор: {before}", {"before": before}) from None


activity_router = APIRouter(prefix="/activity", tags=["Activity"], responses=ERROR_RESPONSES)


@activity_router.get("", response_model=ActivityPage)
async def recent_activity(
    limit: int = Query(settings.activity.ACTIVITY_DEFAULT_LIMIT),
    before: Optional[str] = None,
    level: Optional[ActivityLevel] = None,
    log: ActivityLogRepository = Depends(get_activity_log),
):
    items = await log.recent(limit, before=parse_cursor(before), level=level)
    # Полная страница: возможно, есть более старые события
    next_before = items[-1].id if items and len(items) >= min(limit, settings.activity.ACTIVITY_MAX_LIMIT) else None
    return ActivityPage(items=items, next_before=next_before)


# =============================================================================
# СВОДКА
# =============================================================================

fleet_router = APIRouter(prefix="/fleet", tags=["Fleet"])


@fleet_router.get("/summary", response_model=FleetSummary)
async def fleet_summary(service: FleetService = Depends(get_fleet_service)):
    return await service.summary()


router = APIRouter()
router.include_router(pickups_router)
router.include_router(drivers_router)
router.include_router(settings_router)
router.include_router(activity_router)
router.include_router(fleet_router)
