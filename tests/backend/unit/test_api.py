import random

import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from quizroom.backend.api import create_app
from quizroom.backend.store import InMemoryRoomStore


def _client() -> TestClient:
    return TestClient(create_app(store=InMemoryRoomStore(), rng=random.Random(0)))


def test_post_room_creates_defaults_and_get_returns_state() -> None:
    client = _client()

    created = client.post("/api/rooms/R1")
    fetched = client.get("/api/rooms/R1")

    assert created.status_code == 200
    assert fetched.status_code == 200
    assert fetched.json()["state"] == created.json()["state"]
    assert fetched.json()["state"]["question"]["answerMode"] == "buzz"


def test_get_missing_room_returns_404() -> None:
    response = _client().get("/api/rooms/nope")

    assert response.status_code == 404
    assert response.json()["detail"] == "Room nope not found"


def test_register_student_rejects_blank_name() -> None:
    client = _client()
    client.post("/api/rooms/R1")

    response = client.post("/api/rooms/R1/students", json={"name": "  "})

    assert response.status_code == 422


def test_operations_on_missing_room_return_404() -> None:
    client = _client()

    assert client.post("/api/rooms/nope/students", json={"name": "Ann"}).status_code == 404
    assert client.post("/api/rooms/nope/buzz", json={"name": "Ann"}).status_code == 404
    assert client.post("/api/rooms/nope/cold-call").status_code == 404


def test_cold_call_without_students_returns_409() -> None:
    client = _client()
    client.post("/api/rooms/R1")

    assert client.post("/api/rooms/R1/cold-call").status_code == 409


def test_buzz_round_over_http() -> None:
    client = _client()
    client.post("/api/rooms/R1")
    client.post("/api/rooms/R1/students", json={"name": "Ann"})
    client.post("/api/rooms/R1/students", json={"name": "Bo"})
    client.post("/api/rooms/R1/question", json={"mode": "verbal"})

    first = client.post("/api/rooms/R1/buzz", json={"name": "Bo"}).json()
    second = client.post("/api/rooms/R1/buzz", json={"name": "Ann"}).json()
    rejected = client.post("/api/rooms/R1/answers", json={"name": "Ann", "answer": "41"}).json()
    accepted = client.post("/api/rooms/R1/answers", json={"name": "Bo", "answer": "42"}).json()

    assert first["won"] is True
    assert second["won"] is False
    assert rejected["accepted"] is False
    assert accepted["accepted"] is True
    assert accepted["state"]["buzz"]["lockedBy"] == "Bo"
    assert accepted["state"]["buzz"]["answer"] == "42"

    reset = client.delete("/api/rooms/R1/buzz").json()
    assert reset["state"]["buzz"]["lockedBy"] is None


def test_text_question_collects_typed_answers_and_close_resets() -> None:
    client = _client()
    client.post("/api/rooms/R1")
    opened = client.post("/api/rooms/R1/question", json={"mode": "text", "text": " 6*7? "}).json()

    client.post("/api/rooms/R1/answers", json={"name": "Ann", "answer": "42"})
    state = client.post("/api/rooms/R1/answers", json={"name": "Bo", "answer": "41"}).json()["state"]
    closed = client.delete("/api/rooms/R1/question").json()["state"]

    assert opened["state"]["question"]["text"] == "6*7?"
    assert opened["state"]["question"]["answerMode"] == "typed_all"
    assert len(state["question"]["answers"]) == 2
    assert closed["question"]["answerMode"] == "buzz"
    assert closed["question"]["answers"] == {}


def test_cold_call_pick_and_clear() -> None:
    client = _client()
    client.post("/api/rooms/R1")
    client.post("/api/rooms/R1/students", json={"name": "Ann"})

    picked = client.post("/api/rooms/R1/cold-call").json()
    cleared = client.delete("/api/rooms/R1/cold-call").json()

    assert picked["picked"] == "Ann"
    assert picked["state"]["coldCall"] == {"current": "Ann", "used": ["Ann"]}
    assert cleared["state"]["coldCall"] == {"current": None, "used": ["Ann"]}


def test_websocket_sends_initial_state_after_connect() -> None:
    client = _client()
    client.post("/api/rooms/R1")

    with client.websocket_connect("/ws/rooms/R1") as websocket:
        message = websocket.receive_json()

    assert message["type"] == "state.full"
    assert message["state"]["students"] == []


def test_websocket_pushes_full_state_to_all_clients() -> None:
    store = InMemoryRoomStore()
    app = create_app(store=store)

    with TestClient(app) as client:
        client.post("/api/rooms/R1")

        with client.websocket_connect("/ws/rooms/R1") as ws_host:
            with client.websocket_connect("/ws/rooms/R1") as ws_student:
                ws_host.receive_json()
                ws_student.receive_json()

                client.post("/api/rooms/R1/students", json={"name": "Ann"})

                host_message = ws_host.receive_json()
                student_message = ws_student.receive_json()

    assert host_message["state"]["students"] == ["Ann"]
    assert student_message["state"]["students"] == ["Ann"]
