from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

WATCHED_TABLES = {"expenses", "incomes", "budgets"}

ChangeCallback = Callable[[str], None]


@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller, passed explicitly to whatever needs the user id."""

    user_id: int


class Subscription:
    def __init__(self, notifier: "ChangeNotifier", key: Tuple[int, str], callback: ChangeCallback) -> None:
        self._notifier = notifier
        self._key = key
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self._notifier._remove(self._key, self._callback)
        self.active = False

    def __call__(self) -> None:
        self.unsubscribe()


class ChangeNotifier:
    """Calls subscribers whenever a user's rows in a table change.

    Callbacks receive only the table name; consumers are expected to re-fetch.
    A failing callback is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[Tuple[int, str], List[ChangeCallback]] = {}
        self._lock = threading.Lock()

    def on_change(self, user_id: int, table: str, callback: ChangeCallback) -> Subscription:
        key = (user_id, _normalize_table(table))
        with self._lock:
            self._subscribers.setdefault(key, []).append(callback)
        logger.debug("subscribed: user_id=%s table=%s", user_id, key[1])
        return Subscription(self, key, callback)

    def notify(self, user_id: int, table: str) -> int:
        key = (user_id, _normalize_table(table))
        with self._lock:
            callbacks = list(self._subscribers.get(key, ()))
        logger.debug(
            "change: user_id=%s table=%s subscribers=%d", user_id, key[1], len(callbacks)
        )
        delivered = 0
        for callback in callbacks:
            try:
                callback(key[1])
            except Exception:
                logger.exception(
                    "change subscriber failed: user_id=%s table=%s", user_id, key[1]
                )
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, user_id: int, table: str) -> int:
        key = (user_id, _normalize_table(table))
        with self._lock:
            return len(self._subscribers.get(key, ()))

    def _remove(self, key: Tuple[int, str], callback: ChangeCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(key)
            if not callbacks or callback not in callbacks:
                return
            callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[key]
        logger.debug("unsubscribed: user_id=%s table=%s", key[0], key[1])


def _normalize_table(table: str) -> str:
    normalized = table.strip().lower()
    if normalized not in WATCHED_TABLES:
        raise ValueError(f"Unsupported table: {table}")
    return normalized
