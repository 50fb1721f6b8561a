# src/core/pickups/state_machine.py
"""
Допустимые переходы статусов заявки.

pending -> assigned -> in_progress -> collected; отмена только из pending
или assigned. Обратных переходов нет.
"""

from __future__ import annotations

from src.common.constants import PickupStatus
from src.core.errors import InvalidTransition


class PickupStateMachine:
    ALLOWED_TRANSITIONS = {
        PickupStatus.PENDING: [PickupStatus.ASSIGNED, PickupStatus.CANCELLED],
        PickupStatus.ASSIGNED: [PickupStatus.IN_PROGRESS, PickupStatus.CANCELLED],
        PickupStatus.IN_PROGRESS: [PickupStatus.COLLECTED],
        PickupStatus.COLLECTED: [],
        PickupStatus.CANCELLED: [],
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = PickupStatus(current_status)
            new = PickupStatus(new_status)
            return new in PickupStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False

    @staticmethod
    def ensure(current_status: str, new_status: str, pickup_id: str | None = None) -> None:
        """Raises InvalidTransition, если переход запрещён."""
        if not PickupStateMachine.can_transition(current_status, new_status):
            raise InvalidTransition(str(current_status), str(new_status), pickup_id)

    @staticmethod
    def is_terminal(status: str) -> bool:
        return not PickupStateMachine.ALLOWED_TRANSITIONS.get(PickupStatus(status), [])
