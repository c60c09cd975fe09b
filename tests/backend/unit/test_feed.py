import logging

import pytest

from quizroom.backend.errors import InvalidInput
from quizroom.backend.feed import ChangeFeed
from quizroom.backend.lifecycle import SessionLifecycle
from quizroom.backend.store import InMemoryRoomStore


def test_subscribe_delivers_none_until_room_exists() -> None:
    store = InMemoryRoomStore()
    seen: list = []

    with ChangeFeed(store=store).subscribe("R1", seen.append):
        SessionLifecycle(store=store).ensure("R1")

    assert seen[0] is None
    assert seen[1]["students"] == []


def test_subscribe_delivers_every_commit_until_closed() -> None:
    store = InMemoryRoomStore()
    lifecycle = SessionLifecycle(store=store)
    lifecycle.ensure("R1")
    seen: list = []

    subscription = ChangeFeed(store=store).subscribe("R1", seen.append)
    lifecycle.register_student("R1", "Ann")
    lifecycle.register_student("R1", "Bo")
    subscription.close()
    subscription.close()
    lifecycle.register_student("R1", "Cy")

    assert [state["students"] for state in seen] == [[], ["Ann"], ["Ann", "Bo"]]
    assert subscription.closed is True


def test_failing_callback_does_not_break_writers(caplog) -> None:
    store = InMemoryRoomStore()
    lifecycle = SessionLifecycle(store=store)
    lifecycle.ensure("R1")
    feed = ChangeFeed(store=store)
    seen: list = []

    def explode(state) -> None:
        raise RuntimeError("boom")

    feed.subscribe("R1", explode)
    feed.subscribe("R1", seen.append)
    with caplog.at_level(logging.ERROR, logger="quizroom.backend.feed"):
        lifecycle.register_student("R1", "Ann")

    assert store.get("R1")["students"] == ["Ann"]
    assert seen[-1]["students"] == ["Ann"]
    assert "Change feed callback failed for room R1" in caplog.text


def test_subscribe_rejects_empty_room_id() -> None:
    with pytest.raises(InvalidInput):
        ChangeFeed(store=InMemoryRoomStore()).subscribe("", print)
