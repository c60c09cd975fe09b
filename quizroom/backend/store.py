"""Persistence interfaces and implementations for room documents.

Writes are expressed as patches: a mapping of dotted field paths to values.
A path only replaces the field it names, so ``{"buzz.lockedBy": None}``
leaves ``buzz.answer`` untouched. Values may be the ``SERVER_TIMESTAMP``
sentinel or an ``ArrayUnion``/``ArrayAppend`` operation; both are resolved
by the store at commit time.
"""

from __future__ import annotations

from collections import defaultdict
import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import json
import logging
import threading
import time
from typing import Any, Callable, Protocol

from quizroom.backend.errors import RoomNotFound, TransactionContention


logger = logging.getLogger(__name__)

Document = dict[str, Any]
Patch = dict[str, Any]
TransactionFn = Callable[[Document], Patch | None]
Listener = Callable[[Document | None], None]
Unsubscribe = Callable[[], None]


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Append values that are not already present in the target list."""

    values: tuple[Any, ...]


@dataclass(frozen=True)
class ArrayAppend:
    """Append values unconditionally."""

    values: tuple[Any, ...]


def array_union(*values: Any) -> ArrayUnion:
    return ArrayUnion(values=values)


def array_append(*values: Any) -> ArrayAppend:
    return ArrayAppend(values=values)


def next_server_time(previous: str | None) -> str:
    """Return a UTC timestamp strictly later than ``previous``."""
    now = datetime.now(timezone.utc)
    if previous:
        floor = datetime.fromisoformat(previous) + timedelta(microseconds=1)
        if now < floor:
            now = floor
    return now.isoformat()


def _materialize(value: Any, server_time: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return server_time
    if isinstance(value, dict):
        return {key: _materialize(item, server_time) for key, item in value.items()}
    if isinstance(value, list):
        return [_materialize(item, server_time) for item in value]
    return copy.deepcopy(value)


def _resolve_value(current: Any, value: Any, server_time: str) -> Any:
    if isinstance(value, ArrayUnion):
        merged = list(current) if isinstance(current, list) else []
        for item in value.values:
            item = _materialize(item, server_time)
            if item not in merged:
                merged.append(item)
        return merged
    if isinstance(value, ArrayAppend):
        appended = list(current) if isinstance(current, list) else []
        appended.extend(_materialize(item, server_time) for item in value.values)
        return appended
    return _materialize(value, server_time)


def apply_patch(document: Document, fields: Patch, server_time: str) -> Document:
    """Return a copy of ``document`` with every field path in ``fields`` applied."""
    next_document = copy.deepcopy(document)
    for path, value in fields.items():
        *parents, key = path.split(".")
        target = next_document
        for part in parents:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[key] = _resolve_value(target.get(key), value, server_time)
    return next_document


@dataclass(frozen=True)
class RetryPolicy:
    """Bound and backoff for optimistic transaction retries."""

    max_attempts: int = 5
    base_delay: float = 0.01
    max_delay: float = 0.2

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


class RoomStore(Protocol):
    def get(self, room_id: str) -> Document | None:
        """Return the room document, or None when absent."""

    def create(self, room_id: str, document: Document) -> bool:
        """Create the room unless present; return whether this call created it."""

    def patch(self, room_id: str, fields: Patch) -> None:
        """Apply dotted field paths to an existing room."""

    def transaction(self, room_id: str, fn: TransactionFn) -> bool:
        """Serializable read-modify-write; return True when ``fn``'s patch was committed."""

    def subscribe(self, room_id: str, listener: Listener) -> Unsubscribe:
        """Deliver the current document now and after every committed change."""


@dataclass
class _StoredRoom:
    document: Document
    version: int
    server_time: str


@dataclass
class InMemoryRoomStore:
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        self._lock = threading.RLock()
        self._rooms: dict[str, _StoredRoom] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def get(self, room_id: str) -> Document | None:
        with self._lock:
            stored = self._rooms.get(room_id)
            return None if stored is None else copy.deepcopy(stored.document)

    def create(self, room_id: str, document: Document) -> bool:
        with self._lock:
            if room_id in self._rooms:
                return False
            server_time = next_server_time(None)
            stored = _StoredRoom(
                document=_materialize(document, server_time),
                version=1,
                server_time=server_time,
            )
            self._rooms[room_id] = stored
            self._notify(room_id, stored.document)
            return True

    def patch(self, room_id: str, fields: Patch) -> None:
        with self._lock:
            stored = self._rooms.get(room_id)
            if stored is None:
                raise RoomNotFound(room_id)
            self._commit(room_id, stored, fields)

    def transaction(self, room_id: str, fn: TransactionFn) -> bool:
        attempts = self.retry_policy.max_attempts
        for attempt in range(1, attempts + 1):
            with self._lock:
                stored = self._rooms.get(room_id)
                if stored is None:
                    raise RoomNotFound(room_id)
                snapshot = copy.deepcopy(stored.document)
                read_version = stored.version

            fields = fn(snapshot)
            if fields is None:
                return False

            with self._lock:
                stored = self._rooms.get(room_id)
                if stored is None:
                    raise RoomNotFound(room_id)
                if stored.version == read_version:
                    self._commit(room_id, stored, fields)
                    return True

            logger.warning(f"Transaction conflict on room {room_id} (attempt {attempt}/{attempts})")
            if attempt < attempts:
                self.sleep(self.retry_policy.delay_for(attempt))
        raise TransactionContention(room_id, attempts)

    def subscribe(self, room_id: str, listener: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners[room_id].append(listener)
            stored = self._rooms.get(room_id)
            listener(None if stored is None else copy.deepcopy(stored.document))

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(room_id)
                if listeners is None or listener not in listeners:
                    return
                listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(room_id, None)

        return unsubscribe

    def _commit(self, room_id: str, stored: _StoredRoom, fields: Patch) -> None:
        server_time = next_server_time(stored.server_time)
        stored.document = apply_patch(stored.document, fields, server_time)
        stored.version += 1
        stored.server_time = server_time
        self._notify(room_id, stored.document)

    def _notify(self, room_id: str, document: Document) -> None:
        # Called with the lock held so deliveries follow commit order.
        for listener in list(self._listeners.get(room_id, [])):
            listener(copy.deepcopy(document))


def _load_document(raw: Any) -> Document:
    return raw if isinstance(raw, dict) else json.loads(raw)


@dataclass
class PostgresRoomStore:
    database_url: str
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Callable[[float], None] = time.sleep
    channel: str = "room_changes"
    poll_timeout: float = 1.0
    listen_timeout: float = 5.0

    def __post_init__(self) -> None:
        self._listeners_lock = threading.RLock()
        # Held while reading and delivering, so deliveries never go back in time.
        self._delivery_lock = threading.RLock()
        self._listening = threading.Event()
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._listen_thread: threading.Thread | None = None
        self._stop = threading.Event()

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def _listen_connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url, autocommit=True)

    def get(self, room_id: str) -> Document | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT document FROM rooms WHERE id = %s", (room_id,))
                row = cur.fetchone()
        if row is None:
            return None
        return _load_document(row[0])

    def create(self, room_id: str, document: Document) -> bool:
        server_time = next_server_time(None)
        payload = _materialize(document, server_time)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO rooms (id, document, version, server_time)
                    VALUES (%s, %s::jsonb, 1, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (room_id, json.dumps(payload), server_time),
                )
                created = cur.rowcount == 1
            conn.commit()
        return created

    def patch(self, room_id: str, fields: Patch) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT document, version, server_time FROM rooms WHERE id = %s FOR UPDATE",
                    (room_id,),
                )
                row = cur.fetchone()
                if row is None:
                    raise RoomNotFound(room_id)
                raw_document, version, previous_time = row
                server_time = next_server_time(previous_time)
                next_document = apply_patch(_load_document(raw_document), fields, server_time)
                cur.execute(
                    """
                    UPDATE rooms
                    SET document = %s::jsonb, version = %s, server_time = %s, updated_at = now()
                    WHERE id = %s
                    """,
                    (json.dumps(next_document), version + 1, server_time, room_id),
                )
            conn.commit()

    def transaction(self, room_id: str, fn: TransactionFn) -> bool:
        attempts = self.retry_policy.max_attempts
        for attempt in range(1, attempts + 1):
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "SELECT document, version, server_time FROM rooms WHERE id = %s",
                        (room_id,),
                    )
                    row = cur.fetchone()
                    if row is None:
                        raise RoomNotFound(room_id)
                    raw_document, version, previous_time = row
                    document = _load_document(raw_document)

                    fields = fn(copy.deepcopy(document))
                    if fields is None:
                        return False

                    server_time = next_server_time(previous_time)
                    next_document = apply_patch(document, fields, server_time)
                    cur.execute(
                        """
                        UPDATE rooms
                        SET document = %s::jsonb, version = %s, server_time = %s, updated_at = now()
                        WHERE id = %s AND version = %s
                        """,
                        (json.dumps(next_document), version + 1, server_time, room_id, version),
                    )
                    committed = cur.rowcount == 1
                if committed:
                    conn.commit()
                    return True

            logger.warning(f"Transaction conflict on room {room_id} (attempt {attempt}/{attempts})")
            if attempt < attempts:
                self.sleep(self.retry_policy.delay_for(attempt))
        raise TransactionContention(room_id, attempts)

    def subscribe(self, room_id: str, listener: Listener) -> Unsubscribe:
        with self._listeners_lock:
            self._start_listening()
        if not self._listening.wait(timeout=self.listen_timeout):
            logger.warning(f"LISTEN {self.channel} not active after {self.listen_timeout}s; changes may be missed")

        with self._delivery_lock:
            with self._listeners_lock:
                self._listeners[room_id].append(listener)
            listener(self.get(room_id))

        def unsubscribe() -> None:
            with self._listeners_lock:
                listeners = self._listeners.get(room_id)
                if listeners is None or listener not in listeners:
                    return
                listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(room_id, None)

        return unsubscribe

    def close(self) -> None:
        self._stop.set()
        if self._listen_thread is not None:
            self._listen_thread.join(timeout=self.poll_timeout * 2)
            self._listen_thread = None

    def _start_listening(self) -> None:
        if self._listen_thread is not None and self._listen_thread.is_alive():
            return
        self._stop.clear()
        self._listening.clear()
        self._listen_thread = threading.Thread(target=self._listen, name="room-changes", daemon=True)
        self._listen_thread.start()

    def _listen(self) -> None:
        with self._listen_connect() as conn:
            conn.execute(f"LISTEN {self.channel}")
            self._listening.set()
            while not self._stop.is_set():
                for notify in conn.notifies(timeout=self.poll_timeout):
                    self.dispatch_change(notify.payload)

    def dispatch_change(self, room_id: str) -> None:
        """Deliver the latest document of ``room_id`` to its listeners."""
        with self._listeners_lock:
            listeners = list(self._listeners.get(room_id, []))
        if not listeners:
            return
        with self._delivery_lock:
            document = self.get(room_id)
            with self._listeners_lock:
                listeners = list(self._listeners.get(room_id, []))
            for listener in listeners:
                listener(copy.deepcopy(document))


def create_store(database_url: str | None, retry_policy: RetryPolicy | None = None) -> RoomStore:
    policy = retry_policy if retry_policy is not None else RetryPolicy()
    if database_url:
        return PostgresRoomStore(database_url=database_url, retry_policy=policy)
    return InMemoryRoomStore(retry_policy=policy)
