"""Typed views of the room document and its wire field names."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


QuestionMode = Literal["verbal", "text"]
AnswerMode = Literal["buzz", "typed_all"]

MODE_VERBAL: QuestionMode = "verbal"
MODE_TEXT: QuestionMode = "text"
ANSWER_MODE_BUZZ: AnswerMode = "buzz"
ANSWER_MODE_TYPED_ALL: AnswerMode = "typed_all"


def answer_mode_for(mode: QuestionMode) -> AnswerMode:
    return ANSWER_MODE_TYPED_ALL if mode == MODE_TEXT else ANSWER_MODE_BUZZ


def _section(data: Any) -> dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _sequence(data: Any) -> list[Any]:
    return data if isinstance(data, list) else []


@dataclass(frozen=True)
class AnswerRecord:
    name: str
    answer: str
    submitted_at: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "answer": self.answer, "submittedAt": self.submitted_at}


@dataclass(frozen=True)
class AnswerEntry:
    name: str
    answer: str

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "answer": self.answer}


@dataclass(frozen=True)
class Question:
    mode: QuestionMode = MODE_VERBAL
    text: str = ""
    answer_mode: AnswerMode = ANSWER_MODE_BUZZ
    answers: dict[str, AnswerRecord] = field(default_factory=dict)
    answers_list: tuple[AnswerEntry, ...] = ()
    asked_at: str | None = None

    @classmethod
    def from_document(cls, data: Any) -> Question:
        data = _section(data)
        answers = {
            key: AnswerRecord(
                name=str(record.get("name", "")),
                answer=str(record.get("answer", "")),
                submitted_at=record.get("submittedAt"),
            )
            for key, record in _section(data.get("answers")).items()
            if isinstance(record, dict)
        }
        answers_list = tuple(
            AnswerEntry(name=str(entry.get("name", "")), answer=str(entry.get("answer", "")))
            for entry in _sequence(data.get("answersList"))
            if isinstance(entry, dict)
        )
        return cls(
            mode=MODE_TEXT if data.get("mode") == MODE_TEXT else MODE_VERBAL,
            text=str(data.get("text") or ""),
            answer_mode=ANSWER_MODE_TYPED_ALL if data.get("answerMode") == ANSWER_MODE_TYPED_ALL else ANSWER_MODE_BUZZ,
            answers=answers,
            answers_list=answers_list,
            asked_at=data.get("askedAt"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "text": self.text,
            "answerMode": self.answer_mode,
            "answers": {key: record.to_document() for key, record in self.answers.items()},
            "answersList": [entry.to_document() for entry in self.answers_list],
            "askedAt": self.asked_at,
        }


@dataclass(frozen=True)
class Buzz:
    locked_by: str | None = None
    locked_at: str | None = None
    answer: str | None = None

    @classmethod
    def from_document(cls, data: Any) -> Buzz:
        data = _section(data)
        return cls(
            locked_by=data.get("lockedBy") or None,
            locked_at=data.get("lockedAt"),
            answer=data.get("answer"),
        )

    def to_document(self) -> dict[str, Any]:
        return {"lockedBy": self.locked_by, "lockedAt": self.locked_at, "answer": self.answer}


@dataclass(frozen=True)
class ColdCall:
    current: str | None = None
    used: tuple[str, ...] = ()

    @classmethod
    def from_document(cls, data: Any) -> ColdCall:
        data = _section(data)
        return cls(current=data.get("current") or None, used=tuple(_sequence(data.get("used"))))

    def to_document(self) -> dict[str, Any]:
        return {"current": self.current, "used": list(self.used)}


@dataclass(frozen=True)
class Room:
    """One quiz session. Missing or malformed fields read as their defaults."""

    created_at: str | None = None
    students: tuple[str, ...] = ()
    question: Question = field(default_factory=Question)
    buzz: Buzz = field(default_factory=Buzz)
    cold_call: ColdCall = field(default_factory=ColdCall)

    @classmethod
    def from_document(cls, data: Any) -> Room:
        data = _section(data)
        return cls(
            created_at=data.get("createdAt"),
            students=tuple(_sequence(data.get("students"))),
            question=Question.from_document(data.get("question")),
            buzz=Buzz.from_document(data.get("buzz")),
            cold_call=ColdCall.from_document(data.get("coldCall")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "createdAt": self.created_at,
            "students": list(self.students),
            "question": self.question.to_document(),
            "buzz": self.buzz.to_document(),
            "coldCall": self.cold_call.to_document(),
        }


def normalize_name(value: Any) -> str:
    """Student names are free-form; only surrounding whitespace is dropped."""
    return str(value or "").strip()
