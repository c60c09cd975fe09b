"""Random cold-call selection without repeats until the roster is exhausted."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import Any

from quizroom.backend.errors import NoStudents, require_room_id
from quizroom.backend.models import Room
from quizroom.backend.store import RoomStore


logger = logging.getLogger(__name__)


@dataclass
class ColdCallSelector:
    store: RoomStore
    rng: random.Random = field(default_factory=random.Random)

    def pick(self, room_id: str) -> str:
        """Pick a student not yet called in this cycle and return the name.

        When everyone has been called, the used pool is cleared and the pick
        is drawn from the full roster, starting a new cycle. ``used`` is not
        touched by new questions, so a cycle spans questions.
        """
        room_id = require_room_id(room_id)
        picked: list[str] = []

        def choose(document: dict[str, Any]) -> dict[str, Any]:
            room = Room.from_document(document)
            students = list(room.students)
            if not students:
                raise NoStudents(room_id)

            used = list(room.cold_call.used)
            available = [student for student in students if student not in used]
            if available:
                pool = available
                next_used = used
            else:
                logger.info(f"Cold-call roster exhausted in room {room_id}, starting a new cycle")
                pool = students
                next_used = []

            choice = self.rng.choice(pool)
            next_used.append(choice)
            picked[:] = [choice]
            return {"coldCall.current": choice, "coldCall.used": next_used}

        self.store.transaction(room_id, choose)
        logger.info(f"Cold-called {picked[0]!r} in room {room_id}")
        return picked[0]

    def clear(self, room_id: str) -> None:
        room_id = require_room_id(room_id)
        self.store.patch(room_id, {"coldCall.current": None})
