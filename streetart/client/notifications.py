"""
Transient notifications (capture alerts, achievement unlocks) with auto-dismissal.
Expiry is checked lazily whenever the active list is read.
"""

import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable

from streetart.config import NOTIFICATION_DISMISS_SECONDS

KIND_CAPTURE = "capture"
KIND_ACHIEVEMENT = "achievement"


@dataclass
class Notification:
    id: int
    kind: str
    payload: dict[str, Any]
    created_at: float
    expires_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "payload": dict(self.payload),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }


class NotificationQueue:
    def __init__(
        self,
        dismiss_after: float = NOTIFICATION_DISMISS_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.dismiss_after = dismiss_after
        self._clock = clock
        self._ids = itertools.count(1)
        self._items: list[Notification] = []

    def push(self, kind: str, payload: dict[str, Any], now: float | None = None) -> Notification:
        now = self._clock() if now is None else now
        item = Notification(next(self._ids), kind, dict(payload), now, now + self.dismiss_after)
        self._items.append(item)
        return item

    def active(self, now: float | None = None) -> list[Notification]:
        """Drop expired notifications and return the rest, oldest first."""
        now = self._clock() if now is None else now
        self._items = [n for n in self._items if n.expires_at > now]
        return list(self._items)

    def dismiss(self, notification_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) < before

    def clear(self) -> None:
        self._items = []

    def __len__(self) -> int:
        return len(self._items)
