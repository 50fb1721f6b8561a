# src/services/live_channel/distributor.py
"""
Рассылка новых событий журнала подключённым сессиям дашборда.

У каждой сессии своя FIFO-очередь: публикация только кладёт событие в
очереди и никогда не ждёт потребителя. Пропущенные за время отключения
события не досылаются; клиент сверяется через recent().
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning
from src.shared.events.activity import ActivityEvent


@dataclass(eq=False)
class SessionHandle:
    """Подписка одной сессии дашборда."""
    session_id: str = field(default_factory=lambda: str(uuid4()))
    label: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    delivered: int = 0
    closed: bool = False
    # None в очереди — сигнал закрытия для потребителя
    queue: asyncio.Queue[Optional[ActivityEvent]] = field(default_factory=asyncio.Queue)

    @property
    def pending(self) -> int:
        return self.queue.qsize()

    async def next_event(self) -> Optional[ActivityEvent]:
        """Следующее событие сессии или None, если сессия закрыта."""
        if self.closed and self.queue.empty():
            return None
        event = await self.queue.get()
        if event is None:
            return None
        self.delivered += 1
        return event

    def drain(self) -> list[ActivityEvent]:
        """Забирает всё, что уже лежит в очереди, без ожидания."""
        events: list[ActivityEvent] = []
        while not self.queue.empty():
            event = self.queue.get_nowait()
            if event is None:
                break
            self.delivered += 1
            events.append(event)
        return events


class LiveChannelDistributor:
    """
    Fan-out событий по сессиям.

    Поддерживает:
    - Подписку/отписку сессий (отписка идемпотентна)
    - Публикацию без ожидания потребителей
    - Ограничение отставания сессии (max_pending, 0 — без ограничения)
    """

    def __init__(self, max_pending: int = 0) -> None:
        self._sessions: dict[str, SessionHandle] = {}
        self._max_pending = max_pending

        # Для статистики
        self._total_sessions: int = 0
        self._total_published: int = 0
        self._total_delivered: int = 0

    @property
    def active_sessions(self) -> int:
        """Количество активных сессий."""
        return len(self._sessions)

    def subscribe(self, label: Optional[str] = None) -> SessionHandle:
        """Новая сессия. Получает только события, опубликованные после подписки."""
        handle = SessionHandle(label=label)
        self._sessions[handle.session_id] = handle
        self._total_sessions += 1
        return handle

    def unsubscribe(self, handle: SessionHandle) -> None:
        """Закрывает сессию и будит её потребителя. Повторный вызов ничего не делает."""
        if handle.closed:
            return
        handle.closed = True
        self._sessions.pop(handle.session_id, None)
        try:
            handle.queue.put_nowait(None)
        except asyncio.QueueFull:
            # Потребитель не ждёт: дочитает очередь и увидит closed
            pass

    async def publish(self, event: ActivityEvent) -> int:
        """
        Кладёт событие в очередь каждой активной сессии.

        Ошибка одной сессии закрывает только её и не доходит до публикующего.

        Returns:
            Количество сессий, получивших событие
        """
        self._total_published += 1
        enqueued = 0
        failed: list[tuple[SessionHandle, str]] = []

        for handle in list(self._sessions.values()):
            if self._max_pending and handle.pending >= self._max_pending:
                failed.append((handle, f"отставание больше {self._max_pending} событий"))
                continue
            try:
                handle.queue.put_nowait(event)
                enqueued += 1
                self._total_delivered += 1
            except Exception as e:
                failed.append((handle, str(e)))

        for handle, reason in failed:
            self.unsubscribe(handle)
            await log_warning(
                f"Сессия {handle.session_id} отключена от live-канала: {reason}",
                extra={"session_id": handle.session_id, "label": handle.label},
            )

        return enqueued

    async def close_all(self) -> None:
        """Закрывает все сессии (остановка сервиса)."""
        count = len(self._sessions)
        for handle in list(self._sessions.values()):
            self.unsubscribe(handle)
        if count:
            await log_info(f"Live-канал: закрыто сессий: {count}", type_msg=TypeMsg.INFO)

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "active_sessions": len(self._sessions),
            "total_sessions_ever": self._total_sessions,
            "total_published": self._total_published,
            "total_delivered": self._total_delivered,
        }
