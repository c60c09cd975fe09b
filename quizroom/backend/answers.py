"""Typed-answer aggregation for questions where every student may answer."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, unquote

from quizroom.backend.models import AnswerRecord, Room
from quizroom.backend.store import SERVER_TIMESTAMP, array_append


# Everything but letters, digits and these is percent-encoded, including "." (the store's
# path separator) and "%" itself, so distinct names never share a key.
_KEY_SAFE = "_~-"


def encode_student_key(name: str) -> str:
    return quote(name, safe=_KEY_SAFE).replace(".", "%2E")


def decode_student_key(key: str) -> str:
    return unquote(key)


class AnswerAggregator:
    """Builds typed-answer writes and reads the aggregated answers back."""

    @staticmethod
    def typed_answer_patch(name: str, answer: str) -> dict[str, Any]:
        """Upsert the student's slot in ``answers`` and append to ``answersList``.

        The slot keeps only the latest answer per student; the list keeps every
        submission, so a student who answers twice appears twice.
        """
        return {
            f"question.answers.{encode_student_key(name)}": {
                "name": name,
                "answer": answer,
                "submittedAt": SERVER_TIMESTAMP,
            },
            "question.answersList": array_append({"name": name, "answer": answer}),
        }

    @staticmethod
    def current_answers(room: Room) -> list[AnswerRecord]:
        """Latest answer per student, in order of each student's first submission."""
        order: list[str] = []
        for entry in room.question.answers_list:
            if entry.name not in order:
                order.append(entry.name)
        for record in room.question.answers.values():
            if record.name not in order:
                order.append(record.name)

        by_name = {record.name: record for record in room.question.answers.values()}
        return [by_name[name] for name in order if name in by_name]

    @staticmethod
    def submission_count(room: Room) -> int:
        return len(room.question.answers_list)
