"""State builders and backfill for room documents."""

from __future__ import annotations

from typing import Any

from quizroom.backend.models import Buzz, ColdCall, Question, Room
from quizroom.backend.store import SERVER_TIMESTAMP


def build_initial_room() -> dict[str, Any]:
    """Return the default room document; ``createdAt`` is assigned by the store."""
    document = Room().to_document()
    document["createdAt"] = SERVER_TIMESTAMP
    return document


def _backfill_section(
    patch: dict[str, Any],
    data: dict[str, Any],
    section: str,
    defaults: dict[str, Any],
) -> None:
    current = data.get(section)
    if not isinstance(current, dict):
        patch[section] = defaults
        return
    for key, value in defaults.items():
        if key not in current:
            patch[f"{section}.{key}"] = value
        elif isinstance(value, (dict, list)) and not isinstance(current[key], type(value)):
            patch[f"{section}.{key}"] = value


def backfill_patch(data: dict[str, Any]) -> dict[str, Any]:
    """Return the minimal patch that brings an older room document to the current shape.

    Existing values are never replaced unless a container field holds the wrong
    type (``students`` not a list, ``question.answers`` not a map, ...). An empty
    result means the document is already current.
    """
    patch: dict[str, Any] = {}

    if "createdAt" not in data:
        patch["createdAt"] = SERVER_TIMESTAMP
    if not isinstance(data.get("students"), list):
        patch["students"] = []

    _backfill_section(patch, data, "question", Question().to_document())
    _backfill_section(patch, data, "buzz", Buzz().to_document())
    _backfill_section(patch, data, "coldCall", ColdCall().to_document())
    return patch
