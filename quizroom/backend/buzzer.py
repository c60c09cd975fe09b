"""Buzz lock arbitration and answer submission.

The lock goes to whichever buzz transaction the store commits first. Two
racing buzzes serialize inside ``store.transaction``: the loser re-reads a
document with ``lockedBy`` set and abandons without writing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from quizroom.backend.answers import AnswerAggregator
from quizroom.backend.errors import require_room_id
from quizroom.backend.models import ANSWER_MODE_BUZZ, ANSWER_MODE_TYPED_ALL, Room, normalize_name
from quizroom.backend.store import SERVER_TIMESTAMP, RoomStore


logger = logging.getLogger(__name__)


@dataclass
class BuzzArbiter:
    store: RoomStore
    aggregator: AnswerAggregator = field(default_factory=AnswerAggregator)

    def buzz(self, room_id: str, student_name: str) -> bool:
        """Try to take the buzz lock; return True when this call won it."""
        room_id = require_room_id(room_id)
        name = normalize_name(student_name)
        if not name:
            return False

        def claim(document: dict[str, Any]) -> dict[str, Any] | None:
            room = Room.from_document(document)
            if room.question.answer_mode != ANSWER_MODE_BUZZ:
                logger.debug(f"Ignoring buzz from {name!r} in room {room_id}: typed question")
                return None
            if room.buzz.locked_by:
                logger.debug(f"Ignoring buzz from {name!r} in room {room_id}: locked by {room.buzz.locked_by!r}")
                return None
            return {
                "buzz.lockedBy": name,
                "buzz.lockedAt": SERVER_TIMESTAMP,
                "buzz.answer": None,
            }

        won = self.store.transaction(room_id, claim)
        if won:
            logger.info(f"{name!r} won the buzz in room {room_id}")
        return won

    def submit_answer(self, room_id: str, student_name: str, answer_text: str | None) -> bool:
        """Record an answer; return True when a write was committed.

        Typed questions accept answers from anyone. Buzz questions only accept
        the answer of the student holding the lock.
        """
        room_id = require_room_id(room_id)
        name = normalize_name(student_name)
        if not name:
            return False
        answer = str(answer_text or "").strip()

        def record(document: dict[str, Any]) -> dict[str, Any] | None:
            room = Room.from_document(document)
            if room.question.answer_mode == ANSWER_MODE_TYPED_ALL:
                return self.aggregator.typed_answer_patch(name, answer)
            if room.buzz.locked_by != name:
                logger.debug(f"Ignoring answer from {name!r} in room {room_id}: not the buzz winner")
                return None
            return {"buzz.answer": answer}

        return self.store.transaction(room_id, record)

    def reset_buzz(self, room_id: str) -> None:
        room_id = require_room_id(room_id)
        self.store.patch(
            room_id,
            {
                "buzz.lockedBy": None,
                "buzz.lockedAt": None,
                "buzz.answer": None,
            },
        )
        logger.info(f"Reset buzz lock in room {room_id}")
