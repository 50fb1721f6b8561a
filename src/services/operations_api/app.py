# src/services/operations_api/app.py
"""
FastAPI приложение Operations API.

REST endpoints (префикс /api/v1):
- /pickups, /drivers, /settings, /activity, /fleet/summary

Служебные:
- GET /health — проверка здоровья
- GET /live/stats — статистика live-канала
- WS /ws/activity — поток событий журнала
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.config import settings
from src.core.errors import (
    DriverUnavailable,
    InvalidTransition,
    NotFound,
    OperationsError,
    StorageUnavailable,
    ValidationError,
)
from src.services.live_channel import LiveChannelDistributor, SessionHandle
from src.services.operations_api.container import (
    OperationsContainer,
    build_container,
    close_container,
)
from src.services.operations_api.dependencies import get_container, get_distributor, get_ws_distributor
from src.services.operations_api.routes import router
from src.shared.models.common import ErrorResponse, HealthStatus


# HTTP-статус для каждого вида ошибки
ERROR_STATUS: dict[type[OperationsError], int] = {
    ValidationError: 422,
    NotFound: 404,
    InvalidTransition: 409,
    DriverUnavailable: 409,
    StorageUnavailable: 503,
}


class LiveStats(BaseModel):
    """Статистика live-канала."""
    active_sessions: int
    total_sessions_ever: int
    total_published: int
    total_delivered: int


# =============================================================================
# ОБРАБОТЧИКИ ОШИБОК
# =============================================================================

async def operations_error_handler(request: Request, exc: OperationsError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    body = ErrorResponse(error_code=exc.code, message=exc.message, details=exc.details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
        for err in exc.errors()
    ]
    body = ErrorResponse(
        error_code=ValidationError.code,
        message="Некорректный запрос",
        details={"errors": errors},
    )
    return JSONResponse(status_code=422, content=body.model_dump(mode="json"))


# =============================================================================
# LIVE-КАНАЛ
# =============================================================================

async def _pump_events(websocket: WebSocket, handle: SessionHandle) -> None:
    """Пересылает события сессии в websocket до её закрытия."""
    while True:
        event = await handle.next_event()
        if event is None:
            break
        await websocket.send_json(event.to_message())


async def _handle_client_message(websocket: WebSocket, data: Any) -> None:
    """Обработать сообщение от клиента. Поддерживается только ping."""
    if isinstance(data, dict) and data.get("action") == "ping":
        await websocket.send_json({"type": "pong"})


async def activity_websocket(
    websocket: WebSocket,
    distributor: LiveChannelDistributor = Depends(get_ws_distributor),
) -> None:
    """
    WebSocket ленты активности.

    Исходящие сообщения: {"type": "activity", "event": {...}}.
    Входящие сообщения:
    - {"action": "ping"} — ответ {"type": "pong"}
    Остальное игнорируется. Пропущенные события не досылаются.
    """
    await websocket.accept()
    handle = distributor.subscribe(label=websocket.client.host if websocket.client else None)
    sender = asyncio.create_task(_pump_events(websocket, handle))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Бинарные и не-JSON кадры игнорируются
            if message.get("text") is None:
                continue
            try:
                data = json.loads(message["text"])
            except ValueError:
                continue
            await _handle_client_message(websocket, data)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        await log_error(f"Ошибка websocket-сессии {handle.session_id}: {e}")
    finally:
        distributor.unsubscribe(handle)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            await log_error(f"Ошибка отправки в сессию {handle.session_id}: {e}")


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

def create_app(container: Optional[OperationsContainer] = None) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        container: Готовый контейнер (тесты); иначе собирается в lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Жизненный цикл приложения."""
        setup_logging()
        await log_info("Operations API запускается...", type_msg=TypeMsg.INFO)

        owned = container is None
        app.state.container = container if container is not None else await build_container()
        if not app.state.container.settings_store.is_loaded:
            await app.state.container.settings_store.load()

        yield

        if owned:
            await close_container(app.state.container)
        await log_info("Operations API остановлен", type_msg=TypeMsg.INFO)

    app = FastAPI(
        title="Waste Operations API",
        description="Заявки на вывоз, водители, журнал активности и live-канал для дашборда",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(OperationsError, operations_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(router, prefix=settings.api.API_PREFIX)
    app.add_api_websocket_route(settings.live_channel.LIVE_CHANNEL_PATH, activity_websocket)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check(request: Request) -> HealthStatus:
        """Проверка здоровья сервиса."""
        current = get_container(request)
        deps = {"storage": current.backend.value}

        if current.db is not None:
            deps["postgres"] = "healthy" if await current.db.health_check() else "unhealthy"

        overall = "healthy" if deps.get("postgres", "healthy") == "healthy" else "degraded"
        return HealthStatus(
            service="operations_api",
            status=overall,
            version=settings.system.VERSION,
            dependencies=deps,
        )

    @app.get("/live/stats", response_model=LiveStats, tags=["Live"])
    async def live_stats(distributor: LiveChannelDistributor = Depends(get_distributor)) -> LiveStats:
        """Получить статистику live-канала."""
        return LiveStats(**distributor.get_stats())

    return app


app = create_app()
