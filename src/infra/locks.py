# src/infra/locks.py
"""
Реестр asyncio-блокировок по ключу (id заявки, id водителя).

Блокировка удаляется из реестра, когда её больше никто не держит и не ждёт,
поэтому реестр не растёт вместе с историей.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator


class KeyedLocks:
    """Взаимное исключение в пределах одного ключа."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        """
        Удерживает блокировку ключа на время блока.

        Example:
            async with locks.hold(driver_id):
                ...
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]
