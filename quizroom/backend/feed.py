"""Push the full room state to subscribers on every committed change."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable

from quizroom.backend.errors import require_room_id
from quizroom.backend.store import RoomStore, Unsubscribe


logger = logging.getLogger(__name__)

RoomCallback = Callable[[dict[str, Any] | None], None]


class Subscription:
    def __init__(self, room_id: str, unsubscribe: Unsubscribe) -> None:
        self.room_id = room_id
        self._unsubscribe = unsubscribe
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._unsubscribe()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class ChangeFeed:
    store: RoomStore

    def subscribe(self, room_id: str, callback: RoomCallback) -> Subscription:
        """Call ``callback`` with the current room now and after every change.

        ``None`` is delivered while the room does not exist. A failing callback
        is logged and never reaches the writer whose commit triggered it.
        """
        room_id = require_room_id(room_id)

        def deliver(document: dict[str, Any] | None) -> None:
            try:
                callback(document)
            except Exception:
                logger.exception(f"Change feed callback failed for room {room_id}")

        return Subscription(room_id, self.store.subscribe(room_id, deliver))
