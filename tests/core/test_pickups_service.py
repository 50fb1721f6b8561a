# tests/core/test_pickups_service.py
"""
Тесты для PickupService: жизненный цикл заявки, занятость водителя, выплата.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.common.constants import ActivityAction, DriverAvailability, PickupStatus
from src.core.activity import ActivityJournal, InMemoryActivityLog
from src.core.drivers import DriverService, InMemoryDriverRepository
from src.core.errors import DriverUnavailable, InvalidTransition, NotFound, StorageUnavailable, ValidationError
from src.core.operational_settings import SettingsStore
from src.core.pickups import (
    InMemoryPickupRepository,
    PickupService,
    PickupRequest,
    PostgresPickupRepository,
    calculate_payout,
    normalize_waste_types,
    validate_weights,
)
from src.infra.locks import KeyedLocks


# =============================================================================
# ЧИСТЫЕ ФУНКЦИИ
# =============================================================================

class TestHelpers:
    def test_normalize_waste_types(self) -> None:
        assert normalize_waste_types([" Plastic", "paper", "PLASTIC", ""]) == ["plastic", "paper"]

    @pytest.mark.parametrize("values", [[], ["", "  "], "plastic", [1, 2]])
    def test_normalize_rejects(self, values) -> None:
        with pytest.raises(ValidationError):
            normalize_waste_types(values)

    def test_validate_weights_normalizes_keys(self) -> None:
        assert validate_weights({" Plastic ": 2, "paper": 1.5}, ["plastic", "paper"]) == {
            "plastic": 2.0,
            "paper": 1.5,
        }

    @pytest.mark.parametrize(
        "weights",
        [
            {},
            {"plastic": -1},
            {"plastic": "10"},
            {"plastic": True},
            {"plastic": float("nan")},
            {"plastic": float("inf")},
            {"glass": 3},
        ],
    )
    def test_validate_weights_rejects(self, weights) -> None:
        with pytest.raises(ValidationError):
            validate_weights(weights, ["plastic", "paper"])

    def test_calculate_payout_with_fallback(self) -> None:
        payout = calculate_payout({"plastic": 10.0, "textile": 4.0}, {"plastic": 0.5}, 0.1)

        assert payout == 5.4


# =============================================================================
# СОЗДАНИЕ И ЧТЕНИЕ
# =============================================================================

@pytest.mark.asyncio
async def test_create_pickup(pickup_service: PickupService, activity_log: InMemoryActivityLog) -> None:
    result = await pickup_service.create("user-1", ["Plastic", "paper"], notes="  у подъезда  ")

    pickup = result.value
    assert pickup.status == PickupStatus.PENDING
    assert pickup.waste_types == ["plastic", "paper"]
    assert pickup.notes == "у подъезда"
    assert result.audit_complete is True

    events = await activity_log.recent(10)
    assert len(events) == 1
    assert events[0].action == ActivityAction.PICKUP_CREATED
    assert events[0].details["pickup_id"] == pickup.id
    assert events[0].acting_user_id == "user-1"


@pytest.mark.asyncio
async def test_create_rejects_invalid_input(
    pickup_service: PickupService,
    activity_log: InMemoryActivityLog,
    pickup_repo: InMemoryPickupRepository,
) -> None:
    with pytest.raises(ValidationError):
        await pickup_service.create("   ", ["plastic"])
    with pytest.raises(ValidationError):
        await pickup_service.create("user-1", [])

    assert await pickup_repo.list() == []
    assert len(activity_log) == 0


@pytest.mark.asyncio
async def test_get_unknown_pickup(pickup_service: PickupService) -> None:
    with pytest.raises(NotFound):
        await pickup_service.get("missing")


@pytest.mark.asyncio
async def test_list_filters(pickup_service: PickupService, online_driver) -> None:
    driver = await online_driver()
    first = (await pickup_service.create("user-1", ["plastic"])).value
    second = (await pickup_service.create("user-2", ["paper"])).value
    await pickup_service.assign(second.id, driver.id)

    pending = await pickup_service.list(status="pending")
    by_requester = await pickup_service.list(requester_id="user-2")
    by_driver = await pickup_service.list(driver_id=driver.id)

    assert [p.id for p in pending] == [first.id]
    assert [p.id for p in by_requester] == [second.id]
    assert [p.id for p in by_driver] == [second.id]
    assert len(await pickup_service.list()) == 2

    with pytest.raises(ValidationError):
        await pickup_service.list(status="lost")


# =============================================================================
# ЖИЗНЕННЫЙ ЦИКЛ
# =============================================================================

@pytest.mark.asyncio
async def test_full_lifecycle(
    pickup_service: PickupService,
    driver_service: DriverService,
    settings_store: SettingsStore,
    activity_log: InMemoryActivityLog,
    online_driver,
) -> None:
    await settings_store.load()
    driver = await online_driver()
    events_before = len(activity_log)

    pickup = (await pickup_service.create("user-1", ["plastic", "paper"])).value

    assigned = (await pickup_service.assign(pickup.id, driver.id)).value
    assert assigned.status == PickupStatus.ASSIGNED
    assert assigned.assigned_driver_id == driver.id
    assert (await driver_service.get(driver.id)).availability == DriverAvailability.BUSY

    started = (await pickup_service.start_route(pickup.id)).value
    assert started.status == PickupStatus.IN_PROGRESS
    assert started.started_at is not None

    collected = (await pickup_service.complete(pickup.id, {"plastic": 10, "paper": 5})).value
    assert collected.status == PickupStatus.COLLECTED
    assert collected.waste_types == ["plastic", "paper"]
    assert collected.requester_id == "user-1"
    assert collected.actual_weight_kg == 15.0
    assert collected.earned_amount == 6.0
    assert (await driver_service.get(driver.id)).availability == DriverAvailability.ONLINE

    events = list(reversed(await activity_log.recent(50)))[events_before:]
    assert [e.action for e in events] == [
        ActivityAction.PICKUP_CREATED,
        ActivityAction.DRIVER_ASSIGNED,
        ActivityAction.PICKUP_IN_PROGRESS,
        ActivityAction.PICKUP_COLLECTED,
    ]
    assert all(e.details["pickup_id"] == pickup.id for e in events)
    assert events[3].details["earned_amount"] == 6.0


@pytest.mark.asyncio
async def test_complete_uses_fallback_rate(
    pickup_service: PickupService,
    settings_store: SettingsStore,
    online_driver,
) -> None:
    await settings_store.load()
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["textile"])).value
    await pickup_service.assign(pickup.id, driver.id)
    await pickup_service.start_route(pickup.id)

    collected = (await pickup_service.complete(pickup.id, {"textile": 20})).value

    assert collected.earned_amount == 2.0


@pytest.mark.asyncio
async def test_concurrent_assign_same_driver(pickup_service: PickupService, online_driver) -> None:
    driver = await online_driver()
    first = (await pickup_service.create("user-1", ["plastic"])).value
    second = (await pickup_service.create("user-2", ["glass"])).value

    results = await asyncio.gather(
        pickup_service.assign(first.id, driver.id),
        pickup_service.assign(second.id, driver.id),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], DriverUnavailable)

    assigned = await pickup_service.list(driver_id=driver.id)
    assert len(assigned) == 1


@pytest.mark.asyncio
async def test_concurrent_assign_same_pickup(pickup_service: PickupService, online_driver) -> None:
    driver_a = await online_driver("Анна")
    driver_b = await online_driver("Борис")
    pickup = (await pickup_service.create("user-1", ["plastic"])).value

    results = await asyncio.gather(
        pickup_service.assign(pickup.id, driver_a.id),
        pickup_service.assign(pickup.id, driver_b.id),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidTransition)


@pytest.mark.asyncio
async def test_assign_unavailable_driver(
    pickup_service: PickupService,
    driver_service: DriverService,
) -> None:
    offline = await driver_service.register("Вера")
    pickup = (await pickup_service.create("user-1", ["plastic"])).value

    with pytest.raises(DriverUnavailable):
        await pickup_service.assign(pickup.id, offline.id)
    with pytest.raises(NotFound):
        await pickup_service.assign(pickup.id, "missing-driver")

    assert (await pickup_service.get(pickup.id)).status == PickupStatus.PENDING


@pytest.mark.asyncio
async def test_duplicate_command_rejected(
    pickup_service: PickupService,
    activity_log: InMemoryActivityLog,
    online_driver,
) -> None:
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["plastic"])).value
    await pickup_service.assign(pickup.id, driver.id)
    await pickup_service.start_route(pickup.id)
    events_before = len(activity_log)

    with pytest.raises(InvalidTransition):
        await pickup_service.start_route(pickup.id)

    assert len(activity_log) == events_before


@pytest.mark.asyncio
async def test_cancel_assigned_releases_driver(
    pickup_service: PickupService,
    driver_service: DriverService,
    activity_log: InMemoryActivityLog,
    online_driver,
) -> None:
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["plastic"])).value
    await pickup_service.assign(pickup.id, driver.id)

    cancelled = (await pickup_service.cancel(pickup.id, reason="  клиент отказался ")).value

    assert cancelled.status == PickupStatus.CANCELLED
    assert cancelled.cancellation_reason == "клиент отказался"
    assert cancelled.assigned_driver_id is None
    assert (await pickup_service.get(pickup.id)).assigned_driver_id is None
    assert await pickup_service.list(driver_id=driver.id) == []
    assert (await driver_service.get(driver.id)).availability == DriverAvailability.ONLINE

    last = (await activity_log.recent(1))[0]
    assert last.action == ActivityAction.PICKUP_CANCELLED
    assert last.details == {"pickup_id": pickup.id, "driver_id": driver.id, "reason": "клиент отказался"}


@pytest.mark.asyncio
async def test_cancel_in_progress_rejected(pickup_service: PickupService, online_driver) -> None:
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["plastic"])).value
    await pickup_service.assign(pickup.id, driver.id)
    await pickup_service.start_route(pickup.id)

    with pytest.raises(InvalidTransition):
        await pickup_service.cancel(pickup.id)

    assert (await pickup_service.get(pickup.id)).status == PickupStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_cancel_pending_without_reason(pickup_service: PickupService) -> None:
    pickup = (await pickup_service.create("user-1", ["plastic"])).value

    cancelled = (await pickup_service.cancel(pickup.id)).value

    assert cancelled.status == PickupStatus.CANCELLED
    assert cancelled.cancellation_reason is None
    assert cancelled.assigned_driver_id is None


@pytest.mark.asyncio
async def test_complete_invalid_weights_leaves_pickup(
    pickup_service: PickupService,
    settings_store: SettingsStore,
    online_driver,
) -> None:
    await settings_store.load()
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["plastic"])).value
    await pickup_service.assign(pickup.id, driver.id)
    await pickup_service.start_route(pickup.id)

    with pytest.raises(ValidationError):
        await pickup_service.complete(pickup.id, {"plastic": -3})
    with pytest.raises(ValidationError):
        await pickup_service.complete(pickup.id, {"metal": 3})

    current = await pickup_service.get(pickup.id)
    assert current.status == PickupStatus.IN_PROGRESS
    assert current.collected_weight_by_type is None


@pytest.mark.asyncio
async def test_complete_before_start_rejected(
    pickup_service: PickupService,
    settings_store: SettingsStore,
    online_driver,
) -> None:
    await settings_store.load()
    driver = await online_driver()
    pickup = (await pickup_service.create("user-1", ["plastic"])).value
    await pickup_service.assign(pickup.id, driver.id)

    with pytest.raises(InvalidTransition):
        await pickup_service.complete(pickup.id, {"plastic": 3})


@pytest.mark.asyncio
async def test_journal_failure_keeps_change(
    pickup_repo: InMemoryPickupRepository,
    driver_repo: InMemoryDriverRepository,
    settings_store: SettingsStore,
    locks: KeyedLocks,
) -> None:
    failing_log = AsyncMock(spec=InMemoryActivityLog)
    failing_log.append.side_effect = StorageUnavailable("журнал недоступен")
    service = PickupService(
        pickup_repo,
        driver_repo,
        ActivityJournal(failing_log),
        settings_store,
        locks,
        fallback_rate=0.1,
    )

    result = await service.create("user-1", ["plastic"])

    assert result.audit_complete is False
    assert result.event is None
    assert (await pickup_repo.get(result.value.id)) is not None


@pytest.mark.asyncio
async def test_completed_event_details_are_detached(
    pickup_service: PickupService,
    settings_store: SettingsStore,
    online_driver,
) -> None:
    await settings_store.load()
    driver = await online_driver()
    created = await pickup_service.create("user-1", ["plastic"])
    await pickup_service.assign(created.value.id, driver.id)
    await pickup_service.start_route(created.value.id)

    completed = await pickup_service.complete(created.value.id, {"plastic": 2})

    assert created.event.details["waste_types"] is not created.value.waste_types
    assert completed.event.details["collected_weight_by_type"] is not completed.value.collected_weight_by_type
    completed.value.collected_weight_by_type["plastic"] = 100.0
    assert completed.event.details["collected_weight_by_type"] == {"plastic": 2.0}


# =============================================================================
# POSTGRES (БД ЗАМОКАНА)
# =============================================================================

class TestPostgresPickupRepository:
    @staticmethod
    def _db_with(conn: AsyncMock) -> MagicMock:
        @asynccontextmanager
        async def transaction():
            yield conn

        db = MagicMock()
        db.transaction = transaction
        return db

    @pytest.mark.asyncio
    async def test_cancel_clears_driver_and_releases_it(self) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = "p-1"
        repo = PostgresPickupRepository(self._db_with(conn))
        cancelled = PickupRequest(
            id="p-1",
            requester_id="user-1",
            waste_types=["plastic"],
            status=PickupStatus.CANCELLED,
        )

        await repo.advance(cancelled, expected=PickupStatus.ASSIGNED, release_driver_id="d-1")

        update_args = conn.fetchval.call_args.args
        assert "UPDATE pickups" in update_args[0]
        assert update_args[3] is None
        release_args = conn.execute.call_args.args
        assert "UPDATE drivers" in release_args[0]
        assert release_args[1] == "d-1"

    @pytest.mark.asyncio
    async def test_stale_status_rejected(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = [None, "in_progress"]
        repo = PostgresPickupRepository(self._db_with(conn))
        cancelled = PickupRequest(
            id="p-1",
            requester_id="user-1",
            waste_types=["plastic"],
            status=PickupStatus.CANCELLED,
        )

        with pytest.raises(InvalidTransition):
            await repo.advance(cancelled, expected=PickupStatus.ASSIGNED, release_driver_id="d-1")

        conn.execute.assert_not_called()
