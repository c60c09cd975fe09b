"""Backend package for live classroom quiz rooms."""

from .buzzer import BuzzArbiter
from .coldcall import ColdCallSelector
from .config import RoomSettings, configure_logging, load_settings
from .errors import InvalidInput, NoStudents, QuizRoomError, RoomNotFound, TransactionContention
from .feed import ChangeFeed, Subscription
from .lifecycle import SessionLifecycle
from .questions import QuestionController
from .state import backfill_patch, build_initial_room
from .store import InMemoryRoomStore, PostgresRoomStore, RetryPolicy, RoomStore, create_store

__all__ = [
    "backfill_patch",
    "build_initial_room",
    "BuzzArbiter",
    "ChangeFeed",
    "ColdCallSelector",
    "configure_logging",
    "create_store",
    "InMemoryRoomStore",
    "InvalidInput",
    "load_settings",
    "NoStudents",
    "PostgresRoomStore",
    "QuestionController",
    "QuizRoomError",
    "RetryPolicy",
    "RoomNotFound",
    "RoomSettings",
    "RoomStore",
    "SessionLifecycle",
    "Subscription",
    "TransactionContention",
]
