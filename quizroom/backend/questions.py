"""Host controls for opening and closing a question round."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from quizroom.backend.errors import require_room_id
from quizroom.backend.models import MODE_TEXT, MODE_VERBAL, answer_mode_for
from quizroom.backend.store import SERVER_TIMESTAMP, RoomStore


logger = logging.getLogger(__name__)

# A new or closed question never starts with a buzz lock or an active cold call.
ROUND_RESET: dict[str, Any] = {
    "buzz.lockedBy": None,
    "buzz.lockedAt": None,
    "buzz.answer": None,
    "coldCall.current": None,
}


@dataclass
class QuestionController:
    """Only this controller writes ``question.mode`` and ``question.answerMode``."""

    store: RoomStore

    def open_question(self, room_id: str, mode: str | None = None, text: str | None = None) -> None:
        room_id = require_room_id(room_id)
        question_mode = MODE_TEXT if mode == MODE_TEXT else MODE_VERBAL
        self.store.patch(
            room_id,
            {
                "question.mode": question_mode,
                "question.text": str(text or "").strip() if question_mode == MODE_TEXT else "",
                "question.answerMode": answer_mode_for(question_mode),
                "question.answers": {},
                "question.answersList": [],
                "question.askedAt": SERVER_TIMESTAMP,
            },
        )
        self.store.patch(room_id, dict(ROUND_RESET))
        logger.info(f"Opened {question_mode} question in room {room_id}")

    def close_question(self, room_id: str) -> None:
        room_id = require_room_id(room_id)
        self.store.patch(
            room_id,
            {
                "question.mode": MODE_VERBAL,
                "question.text": "",
                "question.answerMode": answer_mode_for(MODE_VERBAL),
                "question.answers": {},
                "question.answersList": [],
                "question.askedAt": SERVER_TIMESTAMP,
                **ROUND_RESET,
            },
        )
        logger.info(f"Closed question in room {room_id}")
