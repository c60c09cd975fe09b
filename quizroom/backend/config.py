"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from quizroom.backend.store import RetryPolicy


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class RoomSettings:
    database_url: str | None
    host: str
    port: int
    tx_max_attempts: int
    tx_base_delay_ms: int
    tx_max_delay_ms: int
    log_level: str

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.tx_max_attempts,
            base_delay=self.tx_base_delay_ms / 1000,
            max_delay=self.tx_max_delay_ms / 1000,
        )


def load_settings() -> RoomSettings:
    return RoomSettings(
        database_url=os.getenv("QUIZROOM_DATABASE_URL") or None,
        host=os.getenv("QUIZROOM_HOST", "127.0.0.1"),
        port=int(os.getenv("QUIZROOM_PORT", "8000")),
        tx_max_attempts=int(os.getenv("QUIZROOM_TX_MAX_ATTEMPTS", "5")),
        tx_base_delay_ms=int(os.getenv("QUIZROOM_TX_BASE_DELAY_MS", "10")),
        tx_max_delay_ms=int(os.getenv("QUIZROOM_TX_MAX_DELAY_MS", "200")),
        log_level=os.getenv("QUIZROOM_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure basic logging for the backend and return its package logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return logging.getLogger("quizroom")
