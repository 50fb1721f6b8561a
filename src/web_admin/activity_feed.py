# src/web_admin/activity_feed.py
"""
Лента активности админ-панели.

Принимает события live-канала и страницы журнала. Пауза локальна для
ленты: события во время паузы сохраняются, но не показываются до resume().
"""

from __future__ import annotations

import math
from typing import Any, Callable, Optional

from src.common.constants import ActivityAction
from src.shared.events.activity import ActivityEvent


def _short(entity_id: Any) -> str:
    """Последние 4 символа идентификатора для подписи."""
    return str(entity_id)[-4:] if entity_id else "????"


def _pickup_created(details: dict[str, Any]) -> str:
    types = ", ".join(details.get("waste_types") or [])
    return f"Новая заявка #{_short(details.get('pickup_id'))}" + (f": {types}" if types else "")


def _driver_assigned(details: dict[str, Any]) -> str:
    return f"Водитель назначен на заявку #{_short(details.get('pickup_id'))}"


def _pickup_in_progress(details: dict[str, Any]) -> str:
    return f"Водитель выехал по заявке #{_short(details.get('pickup_id'))}"


def _pickup_collected(details: dict[str, Any]) -> str:
    weight = details.get("actual_weight_kg")
    suffix = f" ({weight} кг)" if weight is not None else ""
    return f"Заявка #{_short(details.get('pickup_id'))} выполнена{suffix}"


def _pickup_cancelled(details: dict[str, Any]) -> str:
    reason = details.get("reason")
    return f"Заявка #{_short(details.get('pickup_id'))} отменена" + (f": {reason}" if reason else "")


def _settings_updated(details: dict[str, Any]) -> str:
    changed = ", ".join(details.get("changed") or [])
    return f"Настройки обновлены ({changed})" if changed else "Настройки обновлены"


def _driver_availability_changed(details: dict[str, Any]) -> str:
    return f"Водитель #{_short(details.get('driver_id'))} теперь {details.get('availability', '?')}"


# Иконка и текст для каждого вида события
EVENT_DESCRIPTIONS: dict[ActivityAction, tuple[str, Callable[[dict[str, Any]], str]]] = {
    ActivityAction.PICKUP_CREATED: ("user", _pickup_created),
    ActivityAction.DRIVER_ASSIGNED: ("truck", _driver_assigned),
    ActivityAction.PICKUP_IN_PROGRESS: ("route", _pickup_in_progress),
    ActivityAction.PICKUP_COLLECTED: ("check-circle", _pickup_collected),
    ActivityAction.PICKUP_CANCELLED: ("x-circle", _pickup_cancelled),
    ActivityAction.SETTINGS_UPDATED: ("settings", _settings_updated),
    ActivityAction.DRIVER_AVAILABILITY_CHANGED: ("toggle", _driver_availability_changed),
}

DEFAULT_ICON = "activity"


def describe(event: ActivityEvent | dict[str, Any]) -> tuple[str, str]:
    """
    Иконка и текст для события.

    Принимает событие или сырой dict из сообщения канала; для неизвестного
    вида возвращает иконку по умолчанию и название действия.
    """
    if isinstance(event, ActivityEvent):
        action: Any = event.action
        details = event.details
    else:
        action = event.get("action", "")
        details = event.get("details") or {}

    try:
        icon, render = EVENT_DESCRIPTIONS[ActivityAction(action)]
    except ValueError:
        return DEFAULT_ICON, str(action).replace("_", " ").capitalize()
    return icon, render(details)


class ActivityFeed:
    """Упорядоченная лента событий с локальной паузой."""

    def __init__(self, max_items: int = 100) -> None:
        self._max_items = max_items
        self._events: list[ActivityEvent] = []
        self._ids: set[str] = set()
        # События, полученные во время паузы
        self._held: set[str] = set()
        self._paused = False

    def __len__(self) -> int:
        return len(self._events)

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._held.clear()

    def receive(self, event: ActivityEvent) -> bool:
        """
        Записывает событие из live-канала.

        Returns:
            False, если событие уже есть в ленте
        """
        if event.id in self._ids:
            return False

        self._ids.add(event.id)
        self._events.append(event)
        if self._paused:
            self._held.add(event.id)

        self._events.sort(key=self._order_key)
        self._trim()
        return True

    def receive_message(self, message: dict[str, Any]) -> Optional[ActivityEvent]:
        """Разбирает сообщение канала; не-событийные сообщения (pong) игнорируются."""
        if message.get("type") != "activity":
            return None
        event = ActivityEvent(**message["event"])
        return event if self.receive(event) else None

    def reconcile(self, events: list[ActivityEvent]) -> int:
        """
        Сливает страницу recent() с лентой без дублей.

        Returns:
            Количество добавленных событий
        """
        return sum(1 for event in events if self.receive(event))

    def visible(self) -> list[ActivityEvent]:
        """События для показа, от новых к старым."""
        return [e for e in reversed(self._events) if e.id not in self._held]

    def oldest_id(self) -> Optional[str]:
        """Курсор before для догрузки более старых событий."""
        return self._events[0].id if self._events else None

    @staticmethod
    def _order_key(event: ActivityEvent) -> tuple[float, Any]:
        # Канонический порядок журнала: sequence; created_at только для событий без него
        sequence = event.sequence if event.sequence is not None else math.inf
        return (sequence, event.created_at)

    def _trim(self) -> None:
        overflow = len(self._events) - self._max_items
        if overflow <= 0:
            return
        for event in self._events[:overflow]:
            self._ids.discard(event.id)
            self._held.discard(event.id)
        del self._events[:overflow]
