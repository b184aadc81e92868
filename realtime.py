"""
Change notifications for the store tables.

Writes publish a ChangeEvent to a ChangeFeed; consumers reconcile their local
collections with apply_change. The feed keeps a short numbered history so a
polling client can ask for everything after the last sequence it saw.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import inspect

from logger import Log

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_TYPES = (INSERT, UPDATE, DELETE)

Row = Dict[str, Any]


@dataclass
class ChangeEvent:
    table: str
    type: str
    new: Optional[Row] = None
    old: Optional[Row] = None
    seq: int = 0

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown change type: {self.type}")

    @property
    def row_id(self):
        row = self.old if self.type == DELETE else self.new
        return (row or {}).get("id")


def row_to_dict(obj) -> Row:
    """Column values of an ORM object keyed by column name, JSON friendly."""
    out = {}
    for attr in inspect(obj).mapper.column_attrs:
        value = getattr(obj, attr.key)
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        out[attr.columns[0].name] = value
    return out


def apply_change(collection: List[Row], event: ChangeEvent) -> List[Row]:
    """Return a new collection with the event merged in; the input is not touched."""
    if event.type == INSERT:
        # an echoed insert for a row we already hold behaves like an update
        if any(row.get("id") == event.row_id for row in collection):
            return [event.new if row.get("id") == event.row_id else row for row in collection]
        return [*collection, event.new]
    if event.type == UPDATE:
        return [event.new if row.get("id") == event.row_id else row for row in collection]
    return [row for row in collection if row.get("id") != event.row_id]


class ChangeFeed:
    def __init__(self, history_size: int = 500):
        self._subscribers: Dict[str, List[Callable[[ChangeEvent], None]]] = {}
        self._history = deque(maxlen=history_size)
        self._seq = 0
        self._lock = Lock()

    @property
    def last_seq(self) -> int:
        return self._seq

    @property
    def oldest_seq(self) -> int:
        """Sequence of the oldest event still held; last_seq + 1 when nothing is held."""
        with self._lock:
            return self._history[0].seq if self._history else self._seq + 1

    def has_gap(self, seq: int) -> bool:
        """True when events after seq were already dropped, so a poller must reload its snapshot."""
        return seq + 1 < self.oldest_seq

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None]):
        self._subscribers.setdefault(table, []).append(callback)

        def unsubscribe():
            self._subscribers.get(table, []).remove(callback)
        return unsubscribe

    def publish(self, event: ChangeEvent) -> ChangeEvent:
        with self._lock:
            self._seq += 1
            event.seq = self._seq
            self._history.append(event)
        for callback in list(self._subscribers.get(event.table, [])):
            try:
                callback(event)
            except Exception as e:
                # a broken subscriber must not fail the write that produced the event
                Log.error(f"[realtime.py][ChangeFeed][publish][{event.table}] subscriber failed: {e}")
        return event

    def since(self, seq: int = 0, table: Optional[str] = None) -> List[ChangeEvent]:
        with self._lock:
            events = [e for e in self._history if e.seq > seq]
        if table:
            events = [e for e in events if e.table == table]
        return events


def publish_row(feed: Optional[ChangeFeed], type_: str, obj, old: Optional[Row] = None):
    """Publish a change for an ORM row if a feed is attached."""
    if feed is None:
        return None
    table = obj.__tablename__
    if type_ == DELETE:
        return feed.publish(ChangeEvent(table=table, type=DELETE, old=old or row_to_dict(obj)))
    return feed.publish(ChangeEvent(table=table, type=type_, new=row_to_dict(obj), old=old))


class LocalCache:
    """Per-table mirror of store rows, kept current from a ChangeFeed."""

    def __init__(self, feed: ChangeFeed, tables):
        self._rows: Dict[str, List[Row]] = {t: [] for t in tables}
        self._lock = Lock()
        self._unsubscribe = [feed.subscribe(t, self._on_change) for t in tables]

    @property
    def tables(self):
        return list(self._rows)

    def load(self, table: str, rows: List[Row]):
        with self._lock:
            self._rows[table] = list(rows)

    def rows(self, table: str) -> List[Row]:
        with self._lock:
            return list(self._rows[table])

    def _on_change(self, event: ChangeEvent):
        with self._lock:
            self._rows[event.table] = apply_change(self._rows.get(event.table, []), event)

    def close(self):
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
