"""FastAPI endpoints for host and student room operations and websocket sync."""

from __future__ import annotations

import asyncio
import random
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .buzzer import BuzzArbiter
from .coldcall import ColdCallSelector
from .config import load_settings
from .errors import InvalidInput, NoStudents, RoomNotFound, TransactionContention
from .feed import ChangeFeed
from .lifecycle import SessionLifecycle
from .questions import QuestionController
from .store import RoomStore, create_store


class RoomStateResponse(BaseModel):
    state: dict[str, Any] | None


class StudentRequest(BaseModel):
    name: str = Field(max_length=200)


class QuestionRequest(BaseModel):
    mode: str = Field(default="verbal", max_length=20)
    text: str = Field(default="", max_length=5000)


class AnswerRequest(BaseModel):
    name: str = Field(max_length=200)
    answer: str = Field(default="", max_length=5000)


class BuzzResponse(BaseModel):
    won: bool
    state: dict[str, Any] | None


class SubmitAnswerResponse(BaseModel):
    accepted: bool
    state: dict[str, Any] | None


class ColdCallResponse(BaseModel):
    picked: str
    state: dict[str, Any] | None


_ERROR_STATUS: dict[type[Exception], int] = {
    RoomNotFound: 404,
    InvalidInput: 422,
    NoStudents: 409,
    TransactionContention: 503,
}


async def _forward_updates(websocket: WebSocket, updates: asyncio.Queue) -> None:
    while True:
        state = await updates.get()
        try:
            await websocket.send_json({"type": "state.full", "state": state})
        except (RuntimeError, WebSocketDisconnect):
            return


def _default_store() -> RoomStore:
    settings = load_settings()
    return create_store(database_url=settings.database_url, retry_policy=settings.retry_policy())


def create_app(store: RoomStore | None = None, rng: random.Random | None = None) -> FastAPI:
    app = FastAPI(title="Quiz Room API", version="0.1.0")
    room_store = store if store is not None else _default_store()

    lifecycle = SessionLifecycle(store=room_store)
    questions = QuestionController(store=room_store)
    arbiter = BuzzArbiter(store=room_store)
    selector = ColdCallSelector(store=room_store, rng=rng if rng is not None else random.Random())
    feed = ChangeFeed(store=room_store)
    app.state.room_store = room_store

    for error_type, status_code in _ERROR_STATUS.items():

        async def handle_error(request: Request, exc: Exception, status_code: int = status_code) -> JSONResponse:
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        app.add_exception_handler(error_type, handle_error)

    @app.post("/api/rooms/{room_id}", response_model=RoomStateResponse)
    def ensure_room(room_id: str) -> RoomStateResponse:
        lifecycle.ensure(room_id)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.get("/api/rooms/{room_id}", response_model=RoomStateResponse)
    def get_room(room_id: str) -> RoomStateResponse:
        state = room_store.get(room_id)
        if state is None:
            raise RoomNotFound(room_id)
        return RoomStateResponse(state=state)

    @app.post("/api/rooms/{room_id}/students", response_model=RoomStateResponse)
    def register_student(room_id: str, payload: StudentRequest) -> RoomStateResponse:
        lifecycle.register_student(room_id, payload.name)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.post("/api/rooms/{room_id}/question", response_model=RoomStateResponse)
    def open_question(room_id: str, payload: QuestionRequest) -> RoomStateResponse:
        questions.open_question(room_id, mode=payload.mode, text=payload.text)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.delete("/api/rooms/{room_id}/question", response_model=RoomStateResponse)
    def close_question(room_id: str) -> RoomStateResponse:
        questions.close_question(room_id)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.post("/api/rooms/{room_id}/buzz", response_model=BuzzResponse)
    def buzz(room_id: str, payload: StudentRequest) -> BuzzResponse:
        won = arbiter.buzz(room_id, payload.name)
        return BuzzResponse(won=won, state=room_store.get(room_id))

    @app.delete("/api/rooms/{room_id}/buzz", response_model=RoomStateResponse)
    def reset_buzz(room_id: str) -> RoomStateResponse:
        arbiter.reset_buzz(room_id)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.post("/api/rooms/{room_id}/answers", response_model=SubmitAnswerResponse)
    def submit_answer(room_id: str, payload: AnswerRequest) -> SubmitAnswerResponse:
        accepted = arbiter.submit_answer(room_id, payload.name, payload.answer)
        return SubmitAnswerResponse(accepted=accepted, state=room_store.get(room_id))

    @app.post("/api/rooms/{room_id}/cold-call", response_model=ColdCallResponse)
    def pick_student(room_id: str) -> ColdCallResponse:
        picked = selector.pick(room_id)
        return ColdCallResponse(picked=picked, state=room_store.get(room_id))

    @app.delete("/api/rooms/{room_id}/cold-call", response_model=RoomStateResponse)
    def clear_cold_call(room_id: str) -> RoomStateResponse:
        selector.clear(room_id)
        return RoomStateResponse(state=room_store.get(room_id))

    @app.websocket("/ws/rooms/{room_id}")
    async def room_ws(websocket: WebSocket, room_id: str) -> None:
        await websocket.accept()
        loop = asyncio.get_running_loop()
        updates: asyncio.Queue = asyncio.Queue()
        subscription = feed.subscribe(
            room_id,
            lambda state: loop.call_soon_threadsafe(updates.put_nowait, state),
        )
        sender = asyncio.create_task(_forward_updates(websocket, updates))
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            subscription.close()
            sender.cancel()

    return app
