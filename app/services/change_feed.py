# app/services/change_feed.py
"""
In-process change feed — push-based observer for row changes.

Services publish after each commit; the dashboard websocket (routers/changes.py)
and any other consumer subscribe per table and get a cancellable handle back.
Transport-agnostic: callbacks are plain callables invoked on the publisher's thread.
"""

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from app.errors import ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

TABLES = ("toilets", "payments", "access_logs")


@dataclass
class ChangeEvent:
    table: str
    action: str            # INSERT | UPDATE | DELETE
    record: dict
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "action": self.action,
            "record": self.record,
            "occurred_at": self.occurred_at.isoformat(),
        }


class Subscription:
    """Handle returned by ChangeFeed.subscribe(). Call cancel() to stop delivery."""

    def __init__(self, feed: "ChangeFeed", sub_id: int, tables: frozenset):
        self._feed = feed
        self.id = sub_id
        self.tables = tables
        self.active = True

    def cancel(self):
        if self.active:
            self._feed._remove(self.id)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.cancel()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscribers = {}   # id -> (tables, callback)

    def subscribe(self, callback: Callable[[ChangeEvent], None],
                  tables: Optional[Iterable[str]] = None) -> Subscription:
        wanted = frozenset(tables) if tables else frozenset(TABLES)
        unknown = wanted - set(TABLES)
        if unknown:
            raise ValidationError(f"Unknown tables: {', '.join(sorted(unknown))}")
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers[sub_id] = (wanted, callback)
        logger.debug(f"[FEED] Subscriber {sub_id} on {sorted(wanted)}")
        return Subscription(self, sub_id, wanted)

    def _remove(self, sub_id: int):
        with self._lock:
            self._subscribers.pop(sub_id, None)
        logger.debug(f"[FEED] Subscriber {sub_id} cancelled")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, table: str, action: str, record: dict) -> int:
        """Deliver to every matching subscriber. Returns the number of deliveries."""
        event = ChangeEvent(table=table, action=action, record=record)
        with self._lock:
            targets = [cb for tables, cb in self._subscribers.values() if table in tables]

        delivered = 0
        for callback in targets:
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                # One broken subscriber must not block the others
                logger.error(f"[FEED] Subscriber callback failed for {table}/{action}: {e}", exc_info=True)
        return delivered

    def publish_row(self, table: str, action: str, row) -> int:
        """Serialize an ORM row with its API schema, then publish it."""
        return self.publish(table, action, serialize_row(table, row))


def serialize_row(table: str, row) -> dict:
    from app.schemas.toilet import ToiletOut
    from app.schemas.payment import PaymentOut
    from app.schemas.access_log import AccessLogOut

    schema = {"toilets": ToiletOut, "payments": PaymentOut, "access_logs": AccessLogOut}[table]
    return schema.model_validate(row).model_dump(mode="json")


change_feed = ChangeFeed()
