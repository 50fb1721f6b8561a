# src/core/pickups/service.py
"""
Сервис заявок на вывоз.
Управляет жизненным циклом заявки и занятостью водителей.
"""

from __future__ import annotations

import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Iterable, Mapping, Optional

from src.common.constants import ActivityAction, PickupStatus, TypeMsg
from src.common.logger import log_info
from src.core.activity.journal import ActivityJournal
from src.core.drivers.repository import DriverRepository
from src.core.drivers.service import driver_lock_key
from src.core.errors import DriverUnavailable, NotFound, ValidationError
from src.core.operational_settings.service import SettingsStore
from src.core.pickups.models import PickupRequest
from src.core.pickups.repository import PickupRepository
from src.core.pickups.state_machine import PickupStateMachine
from src.infra.locks import KeyedLocks
from src.shared.events.activity import ActivityEvent
from src.shared.models.common import OperationResult


def pickup_lock_key(pickup_id: str) -> str:
    return f"pickup:{pickup_id}"


def normalize_waste_types(values: Iterable[Any]) -> list[str]:
    """
    Приводит виды отходов к нижнему регистру, убирает пустые и дубли.
    Порядок первого появления сохраняется.

    Raises:
        ValidationError: не строка или пустой итоговый список
    """
    if isinstance(values, str) or values is None:
        raise ValidationError("waste_types должен быть списком строк", {"waste_types": values})

    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError(f"Некорректный вид отходов: {value!r}", {"waste_types": list(values)})
        tag = value.strip().lower()
        if tag and tag not in result:
            result.append(tag)

    if not result:
        raise ValidationError("Нужен хотя бы один вид отходов", {"waste_types": list(values)})
    return result


def validate_weights(weights: Mapping[str, Any], waste_types: list[str]) -> dict[str, float]:
    """
    Проверяет разбивку веса по видам отходов.

    Raises:
        ValidationError: пустая разбивка, вес не число / отрицательный / не конечный,
            вид отходов не из заявки
    """
    if not isinstance(weights, Mapping) or not weights:
        raise ValidationError("Разбивка веса не может быть пустой", {"collected_weight_by_type": weights})

    result: dict[str, float] = {}
    for raw_tag, weight in weights.items():
        tag = str(raw_tag).strip().lower()
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ValidationError(f"Вес '{raw_tag}' должен быть числом", {"tag": raw_tag, "weight": weight})
        if not math.isfinite(weight) or weight < 0:
            raise ValidationError(f"Недопустимый вес '{raw_tag}': {weight}", {"tag": raw_tag, "weight": weight})
        if tag not in waste_types:
            raise ValidationError(
                f"Вид отходов '{raw_tag}' не указан в заявке",
                {"tag": raw_tag, "waste_types": waste_types},
            )
        result[tag] = result.get(tag, 0.0) + float(weight)
    return result


def calculate_payout(
    weights: Mapping[str, float],
    pricing: Mapping[str, float],
    fallback_rate: float,
) -> float:
    """Выплата: сумма вес × ставка; для видов без ставки берётся fallback_rate."""
    total = sum(weight * pricing.get(tag, fallback_rate) for tag, weight in weights.items())
    return round(total, 2)


class PickupService:
    """
    Сервис заявок.

    Команды над одной заявкой и одним водителем сериализуются блокировками
    (порядок: заявка, затем водитель). Событие пишется в журнал после
    коммита и не откатывает его.
    """

    def __init__(
        self,
        repo: PickupRepository,
        drivers: DriverRepository,
        journal: ActivityJournal,
        settings_store: SettingsStore,
        locks: KeyedLocks,
        fallback_rate: Optional[float] = None,
    ) -> None:
        self._repo = repo
        self._drivers = drivers
        self._journal = journal
        self._settings_store = settings_store
        self._locks = locks

        if fallback_rate is None:
            from src.config import settings

            fallback_rate = settings.operations.FALLBACK_RATE
        self._fallback_rate = fallback_rate

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @asynccontextmanager
    async def _hold_driver(self, driver_id: Optional[str]) -> AsyncGenerator[None, None]:
        """Блокировка водителя заявки; у заявки без водителя блокировать нечего."""
        if driver_id is None:
            yield
            return
        async with self._locks.hold(driver_lock_key(driver_id)):
            yield

    @staticmethod
    def _result(pickup: PickupRequest, event: Optional[ActivityEvent]) -> OperationResult[PickupRequest]:
        return OperationResult(value=pickup, event=event, audit_complete=event is not None)

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get(self, pickup_id: str) -> PickupRequest:
        pickup = await self._repo.get(pickup_id)
        if pickup is None:
            raise NotFound(f"Заявка {pickup_id} не найдена", {"pickup_id": pickup_id})
        return pickup

    async def list(
        self,
        status: Optional[PickupStatus | str] = None,
        requester_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> list[PickupRequest]:
        if status is not None:
            try:
                status = PickupStatus(status)
            except ValueError:
                raise ValidationError(f"Неизвестный статус: {status}", {"status": status}) from None
        return await self._repo.list(status=status, requester_id=requester_id, driver_id=driver_id)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def create(
        self,
        requester_id: str,
        waste_types: Iterable[str],
        notes: Optional[str] = None,
        address: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[PickupRequest]:
        """
        Создаёт заявку в статусе pending.

        Raises:
            ValidationError: пустой requester_id или список видов отходов
        """
        if not isinstance(requester_id, str) or not requester_id.strip():
            raise ValidationError("requester_id не может быть пустым", {"requester_id": requester_id})

        pickup = PickupRequest(
            requester_id=requester_id.strip(),
            waste_types=normalize_waste_types(waste_types),
            notes=notes.strip() if notes and notes.strip() else None,
            address=address.strip() if address and address.strip() else None,
        )
        pickup = await self._repo.add(pickup)

        event = await self._journal.record(
            ActivityAction.PICKUP_CREATED,
            {
                "pickup_id": pickup.id,
                "requester_id": pickup.requester_id,
                "waste_types": list(pickup.waste_types),
            },
            acting_user_id=acting_user_id or pickup.requester_id,
        )
        await log_info(f"Создана заявка {pickup.id}", type_msg=TypeMsg.INFO)
        return self._result(pickup, event)

    async def assign(
        self,
        pickup_id: str,
        driver_id: str,
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[PickupRequest]:
        """
        Назначает водителя на заявку.

        Raises:
            NotFound: заявка или водитель не найдены
            InvalidTransition: заявка не в статусе pending
            DriverUnavailable: водитель не online
        """
        async with self._locks.hold(pickup_lock_key(pickup_id)):
            async with self._locks.hold(driver_lock_key(driver_id)):
                pickup = await self.get(pickup_id)
                PickupStateMachine.ensure(pickup.status, PickupStatus.ASSIGNED, pickup_id)

                driver = await self._drivers.get(driver_id)
                if driver is None:
                    raise NotFound(f"Водитель {driver_id} не найден", {"driver_id": driver_id})
                if not driver.is_online:
                    raise DriverUnavailable(driver_id, driver.availability.value)

                now = self._now()
                assigned = await self._repo.assign(
                    pickup.model_copy(update={
                        "status": PickupStatus.ASSIGNED,
                        "assigned_driver_id": driver_id,
                        "assigned_at": now,
                        "updated_at": now,
                    })
                )

                event = await self._journal.record(
                    ActivityAction.DRIVER_ASSIGNED,
                    {"pickup_id": pickup_id, "driver_id": driver_id},
                    acting_user_id=acting_user_id,
                )

        await log_info(f"Водитель {driver_id} назначен на заявку {pickup_id}", type_msg=TypeMsg.INFO)
        return self._result(assigned, event)

    async def start_route(
        self,
        pickup_id: str,
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[PickupRequest]:
        """
        Водитель выехал по заявке: assigned -> in_progress.

        Raises:
            NotFound: заявка не найдена
            InvalidTransition: заявка не в статусе assigned
        """
        async with self._locks.hold(pickup_lock_key(pickup_id)):
            pickup = await self.get(pickup_id)
            PickupStateMachine.ensure(pickup.status, PickupStatus.IN_PROGRESS, pickup_id)

            now = self._now()
            started = await self._repo.advance(
                pickup.model_copy(update={
                    "status": PickupStatus.IN_PROGRESS,
                    "started_at": now,
                    "updated_at": now,
                }),
                expected=pickup.status,
            )

            event = await self._journal.record(
                ActivityAction.PICKUP_IN_PROGRESS,
                {"pickup_id": pickup_id, "driver_id": started.assigned_driver_id},
                acting_user_id=acting_user_id or started.assigned_driver_id,
            )

        return self._result(started, event)

    async def complete(
        self,
        pickup_id: str,
        collected_weight_by_type: Mapping[str, Any],
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[PickupRequest]:
        """
        Завершает вывоз: in_progress -> collected, водитель снова online.

        Raises:
            NotFound: заявка не найдена
            ValidationError: некорректная разбивка веса
            InvalidTransition: заявка не в статусе in_progress
        """
        async with self._locks.hold(pickup_lock_key(pickup_id)):
            pickup = await self.get(pickup_id)
            weights = validate_weights(collected_weight_by_type, pickup.waste_types)

            async with self._hold_driver(pickup.assigned_driver_id):
                PickupStateMachine.ensure(pickup.status, PickupStatus.COLLECTED, pickup_id)

                pricing = self._settings_store.get().pricing
                now = self._now()
                collected = await self._repo.advance(
                    pickup.model_copy(update={
                        "status": PickupStatus.COLLECTED,
                        "collected_weight_by_type": weights,
                        "actual_weight_kg": round(sum(weights.values()), 3),
                        "earned_amount": calculate_payout(weights, pricing, self._fallback_rate),
                        "collected_at": now,
                        "updated_at": now,
                    }),
                    expected=pickup.status,
                    release_driver_id=pickup.assigned_driver_id,
                )

                event = await self._journal.record(
                    ActivityAction.PICKUP_COLLECTED,
                    {
                        "pickup_id": pickup_id,
                        "driver_id": collected.assigned_driver_id,
                        "collected_weight_by_type": dict(weights),
                        "actual_weight_kg": collected.actual_weight_kg,
                        "earned_amount": collected.earned_amount,
                    },
                    acting_user_id=acting_user_id or collected.assigned_driver_id,
                )

        await log_info(
            f"Заявка {pickup_id} завершена: {collected.actual_weight_kg} кг, выплата {collected.earned_amount}",
            type_msg=TypeMsg.INFO,
        )
        return self._result(collected, event)

    async def cancel(
        self,
        pickup_id: str,
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> OperationResult[PickupRequest]:
        """
        Отменяет заявку из pending или assigned; назначенный водитель освобождается.

        Raises:
            NotFound: заявка не найдена
            InvalidTransition: заявка уже в работе или завершена
        """
        async with self._locks.hold(pickup_lock_key(pickup_id)):
            pickup = await self.get(pickup_id)

            async with self._hold_driver(pickup.assigned_driver_id):
                PickupStateMachine.ensure(pickup.status, PickupStatus.CANCELLED, pickup_id)

                now = self._now()
                reason = reason.strip() if reason and reason.strip() else None
                cancelled = await self._repo.advance(
                    pickup.model_copy(update={
                        "status": PickupStatus.CANCELLED,
                        "assigned_driver_id": None,
                        "cancellation_reason": reason,
                        "cancelled_at": now,
                        "updated_at": now,
                    }),
                    expected=pickup.status,
                    release_driver_id=pickup.assigned_driver_id,
                )

                event = await self._journal.record(
                    ActivityAction.PICKUP_CANCELLED,
                    {
                        "pickup_id": pickup_id,
                        "driver_id": pickup.assigned_driver_id,
                        "reason": reason,
                    },
                    acting_user_id=acting_user_id,
                )

        return self._result(cancelled, event)
