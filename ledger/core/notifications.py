"""ledger.core.notifications

In-process notification sink.

Events are journaled inside the operation's transaction. Subscribers hear
about them only after the transaction committed, so nobody is ever told about
a transition that was rolled back.

Design goals:
- best-effort delivery (a failing subscriber never affects the ledger)
- simple glob matching on event type strings (fnmatch)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from fnmatch import fnmatchcase

from ledger.core.models import Event

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], None]


@dataclass(frozen=True)
class Subscription:
    id: int
    event_glob: str
    callback: Subscriber


class NotificationSink:
    def __init__(self) -> None:
        self._subs: list[Subscription] = []
        self._next_id = 1

    def subscribe(self, callback: Subscriber, *, event_glob: str = "*") -> int:
        sub = Subscription(id=self._next_id, event_glob=event_glob, callback=callback)
        self._next_id += 1
        self._subs.append(sub)
        return sub.id

    def unsubscribe(self, subscription_id: int) -> bool:
        before = len(self._subs)
        self._subs = [s for s in self._subs if s.id != subscription_id]
        return len(self._subs) != before

    def dispatch(self, events: Iterable[Event]) -> int:
        """Deliver committed events. Returns the number of successful deliveries."""

        delivered = 0
        for event in events:
            for sub in list(self._subs):
                if not fnmatchcase(str(event.type), sub.event_glob):
                    continue
                try:
                    sub.callback(event)
                    delivered += 1
                except Exception:
                    logger.exception(
                        "notification_delivery_failed",
                        extra={"subscription_id": sub.id, "event_type": str(event.type), "event_id": event.id},
                    )
        return delivered
