"""Exceptions raised by room operations.

The API layer maps each of these to an HTTP status; abandoned writes
(wrong mode, lost buzz race, wrong student) are not errors and never raise.
"""

from __future__ import annotations


class QuizRoomError(Exception):
    """Base class for all room errors."""


class RoomNotFound(QuizRoomError):
    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class InvalidInput(QuizRoomError):
    """Empty room id or empty student name where one is required."""


class NoStudents(QuizRoomError):
    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room {room_id} has no students connected")


class TransactionContention(QuizRoomError):
    """A transaction kept conflicting with concurrent commits until the retry bound."""

    def __init__(self, room_id: str, attempts: int) -> None:
        self.room_id = room_id
        self.attempts = attempts
        super().__init__(f"Transaction on room {room_id} gave up after {attempts} attempts")


def require_room_id(room_id: str) -> str:
    if not room_id or not str(room_id).strip():
        raise InvalidInput("Room id required")
    return str(room_id)
