# tests/core/test_activity_journal.py
"""
Тесты для ActivityJournal: запись события и публикация в live-канал.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.common.constants import ActivityAction, ActivityLevel
from src.core.activity import ActivityJournal, InMemoryActivityLog
from src.core.errors import StorageUnavailable
from src.services.live_channel import LiveChannelDistributor


@pytest.mark.asyncio
async def test_record_appends_and_publishes(
    journal: ActivityJournal,
    activity_log: InMemoryActivityLog,
    distributor: LiveChannelDistributor,
) -> None:
    handle = distributor.subscribe()

    event = await journal.record(
        ActivityAction.PICKUP_CREATED,
        {"pickup_id": "p-1"},
        acting_user_id="user-1",
    )

    assert event is not None
    assert event.sequence == 1
    assert event.acting_user_id == "user-1"
    assert [e.id for e in await activity_log.recent(10)] == [event.id]
    assert [e.id for e in handle.drain()] == [event.id]


@pytest.mark.asyncio
async def test_default_level_by_action(journal: ActivityJournal) -> None:
    collected = await journal.record(ActivityAction.PICKUP_COLLECTED, {"pickup_id": "p-1"})
    cancelled = await journal.record(ActivityAction.PICKUP_CANCELLED, {"pickup_id": "p-2"})
    explicit = await journal.record(
        ActivityAction.SETTINGS_UPDATED, {"changed": ["zones"]}, level=ActivityLevel.ERROR
    )

    assert collected.level == ActivityLevel.SUCCESS
    assert cancelled.level == ActivityLevel.WARNING
    assert explicit.level == ActivityLevel.ERROR


@pytest.mark.asyncio
async def test_storage_failure_returns_none_and_skips_publish() -> None:
    log = AsyncMock()
    log.append.side_effect = StorageUnavailable("журнал недоступен")
    publisher = AsyncMock()
    journal = ActivityJournal(log, publisher)

    event = await journal.record(ActivityAction.DRIVER_ASSIGNED, {"pickup_id": "p-1"})

    assert event is None
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_publisher_error_does_not_fail_record(activity_log: InMemoryActivityLog) -> None:
    publisher = AsyncMock()
    publisher.publish.side_effect = RuntimeError("socket closed")
    journal = ActivityJournal(activity_log, publisher)

    event = await journal.record(ActivityAction.PICKUP_CREATED, {"pickup_id": "p-1"})

    assert event is not None
    assert len(activity_log) == 1


@pytest.mark.asyncio
async def test_without_publisher(activity_log: InMemoryActivityLog) -> None:
    journal = ActivityJournal(activity_log)

    event = await journal.record(ActivityAction.PICKUP_CREATED, {"pickup_id": "p-1"})

    assert event is not None
    assert journal.log is activity_log


@pytest.mark.asyncio
async def test_channel_order_matches_log_order(
    journal: ActivityJournal,
    activity_log: InMemoryActivityLog,
    distributor: LiveChannelDistributor,
) -> None:
    handle = distributor.subscribe()

    await asyncio.gather(*(
        journal.record(ActivityAction.PICKUP_CREATED, {"pickup_id": f"p-{i}"})
        for i in range(20)
    ))

    logged = list(reversed(await activity_log.recent(50)))
    received = handle.drain()
    assert [e.id for e in received] == [e.id for e in logged]
    assert [e.sequence for e in received] == list(range(1, 21))


@pytest.mark.asyncio
async def test_created_at_follows_sequence(
    journal: ActivityJournal,
    activity_log: InMemoryActivityLog,
) -> None:
    await asyncio.gather(*(
        journal.record(ActivityAction.PICKUP_CREATED, {"pickup_id": f"p-{i}"})
        for i in range(20)
    ))

    logged = list(reversed(await activity_log.recent(50)))
    assert [e.sequence for e in logged] == list(range(1, 21))
    assert all(a.created_at <= b.created_at for a, b in zip(logged, logged[1:]))
