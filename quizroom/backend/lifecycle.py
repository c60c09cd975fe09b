"""Room creation, schema backfill and student registration."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from quizroom.backend.errors import InvalidInput, require_room_id
from quizroom.backend.models import normalize_name
from quizroom.backend.state import backfill_patch, build_initial_room
from quizroom.backend.store import RoomStore, array_union


logger = logging.getLogger(__name__)


@dataclass
class SessionLifecycle:
    store: RoomStore

    def ensure(self, room_id: str) -> None:
        """Create the room on first access, otherwise backfill missing fields.

        Safe to call repeatedly and concurrently: a lost create race falls
        through to the backfill, which runs as a transaction so writes committed
        meanwhile are re-read, not overwritten. An up-to-date document is never
        written.
        """
        room_id = require_room_id(room_id)
        if self.store.get(room_id) is None and self.store.create(room_id, build_initial_room()):
            logger.info(f"Created room {room_id}")
            return

        def backfill(document: dict[str, Any]) -> dict[str, Any] | None:
            patch = backfill_patch(document)
            if not patch:
                return None
            logger.debug(f"Backfilling room {room_id}: {sorted(patch)}")
            return patch

        self.store.transaction(room_id, backfill)

    def register_student(self, room_id: str, student_name: str) -> str:
        room_id = require_room_id(room_id)
        name = normalize_name(student_name)
        if not name:
            raise InvalidInput("Student name required")
        self.store.patch(room_id, {"students": array_union(name)})
        logger.info(f"Registered student {name!r} in room {room_id}")
        return name
