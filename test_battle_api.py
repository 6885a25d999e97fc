#!/usr/bin/env python3
"""
Test Battle Room API
====================
Drives the full room flow over HTTP and the room websocket with
FastAPI's TestClient (no server needed).

Usage:
    pytest test_battle_api.py
"""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tcg_arena.apps.decks.service import DeckStore
from tcg_arena.core import config, dependencies
from tcg_arena.core.config import Settings
from tcg_arena.core.database import InMemoryDB
from tcg_arena.core.dependencies import get_deck_store, get_engine
from tcg_arena.core.match_engine import MatchEngine
from tcg_arena.core.repository import InMemoryMatchRepository
from tcg_arena.main import app

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
CAROL = {"X-User-Id": "carol"}


@pytest.fixture
def client():
    store = InMemoryDB()
    decks = DeckStore(store)
    ticks = count(1)
    engine = MatchEngine(
        InMemoryMatchRepository(store),
        decks=decks,
        clock=lambda: datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(ticks)),
    )
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_deck_store] = lambda: decks
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def save_decks(client):
    for user in ("alice", "bob"):
        response = client.put(
            f"/api/decks/{user}",
            json={"deck_id": "main", "name": "Main", "cards": ["1", "2", "3"]},
            headers={"X-User-Id": user},
        )
        assert response.status_code == 200


def create_private_room(client):
    response = client.post(
        "/api/battle/rooms/",
        json={"id": "room1", "name": "room1", "visibility": "private", "password": "abc"},
        headers=ALICE,
    )
    assert response.status_code == 201
    return response.json()


def test_full_battle_flow(client):
    save_decks(client)

    room = create_private_room(client)
    assert room["state"] == "open"
    assert room["slots"][0]["occupant"] == "alice"
    assert "password" not in room and "secret" not in room

    response = client.post("/api/battle/rooms/room1/join", json={"password": "wrong"}, headers=BOB)
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"

    response = client.post("/api/battle/rooms/room1/join", json={"password": "abc"}, headers=BOB)
    assert response.status_code == 200
    assert response.json()["state"] == "ready_pending"
    assert response.json()["players"] == 2

    response = client.post("/api/battle/rooms/room1/ready", headers=ALICE)
    assert response.json()["state"] == "ready_pending"
    response = client.post("/api/battle/rooms/room1/ready", headers=BOB)
    body = response.json()
    assert body["state"] == "in_progress"
    assert body["current_turn"] == "slot-1"

    response = client.post("/api/battle/rooms/room1/turn", headers=BOB)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATE"
    response = client.post("/api/battle/rooms/room1/turn", headers=ALICE)
    assert response.json()["current_turn"] == "slot-2"

    response = client.post("/api/battle/rooms/room1/end", json={"winner_id": "alice"}, headers=BOB)
    assert response.status_code == 200
    finished = response.json()
    assert finished["state"] == "finished"
    assert finished["winner"] == "alice"

    response = client.post("/api/battle/rooms/room1/end", json={"winner_id": "alice"}, headers=ALICE)
    assert response.status_code == 200
    assert response.json() == finished

    response = client.post("/api/battle/rooms/room1/end", json={"winner_id": "bob"}, headers=BOB)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_identity_header_required(client):
    response = client.post("/api/battle/rooms/", json={"name": "room1"})
    assert response.status_code == 401


def test_private_room_without_password(client):
    response = client.post(
        "/api/battle/rooms/",
        json={"name": "room1", "visibility": "private"},
        headers=ALICE,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_ARGUMENT"


def test_unknown_room(client):
    response = client.get("/api/battle/rooms/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_full_room_and_outsider_winner(client):
    create_private_room(client)
    client.post("/api/battle/rooms/room1/join", json={"password": "abc"}, headers=BOB)

    response = client.post("/api/battle/rooms/room1/join", json={"password": "abc"}, headers=CAROL)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATE"

    response = client.post("/api/battle/rooms/room1/end", json={"winner_id": "carol"}, headers=ALICE)
    assert response.status_code == 422

    response = client.post("/api/battle/rooms/room1/end", json={"winner_id": "alice"}, headers=CAROL)
    assert response.status_code == 401


def test_ready_without_deck(client):
    create_private_room(client)
    client.post("/api/battle/rooms/room1/join", json={"password": "abc"}, headers=BOB)
    client.post("/api/battle/rooms/room1/ready", headers=ALICE)
    response = client.post("/api/battle/rooms/room1/ready", headers=BOB)
    assert response.status_code == 409
    assert client.get("/api/battle/rooms/room1").json()["state"] == "ready_pending"


def test_password_check(client):
    create_private_room(client)
    response = client.post("/api/battle/rooms/room1/password", json={"password": "abc"})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    response = client.post("/api/battle/rooms/room1/password", json={"password": "abd"})
    assert response.status_code == 401


def test_list_joinable_rooms(client):
    create_private_room(client)
    client.post("/api/battle/rooms/", json={"id": "room2", "name": "open one"}, headers=CAROL)
    client.post(
        "/api/battle/rooms/",
        json={"id": "room3", "name": "wager", "wager_rarity": "Rare Holo"},
        headers=BOB,
    )

    items = client.get("/api/battle/rooms/").json()["items"]
    assert [r["id"] for r in items] == ["room3", "room2", "room1"]
    assert all(r["max_players"] == 2 for r in items)

    items = client.get("/api/battle/rooms/", params={"visibility": "public"}).json()["items"]
    assert [r["id"] for r in items] == ["room3", "room2"]

    items = client.get("/api/battle/rooms/", params={"wager_rarity": "rare_holo"}).json()["items"]
    assert [r["id"] for r in items] == ["room3"]

    page = client.get("/api/battle/rooms/", params={"limit": 1, "offset": 1}).json()
    assert [r["id"] for r in page["items"]] == ["room2"]

    client.post("/api/battle/rooms/room2/join", json={}, headers=ALICE)
    items = client.get("/api/battle/rooms/").json()["items"]
    assert "room2" not in [r["id"] for r in items]


def test_decks(client):
    response = client.put(
        "/api/decks/bob",
        json={"deck_id": "main", "name": "Main", "cards": ["1"]},
        headers=ALICE,
    )
    assert response.status_code == 401

    save_decks(client)
    decks = client.get("/api/decks/alice").json()
    assert decks == [{"user_id": "alice", "deck_id": "main", "name": "Main", "cards": ["1", "2", "3"]}]


def test_websocket_receives_room_updates(client):
    create_private_room(client)

    with client.websocket_connect("/ws/battle/room1/alice") as ws:
        assert ws.receive_json()["event"] == "connected"
        state = ws.receive_json()
        assert state["event"] == "room_state"
        assert state["data"]["state"] == "open"

        client.post("/api/battle/rooms/room1/join", json={"password": "abc"}, headers=BOB)
        update = ws.receive_json()
        assert update["event"] == "room_updated"
        assert update["data"]["state"] == "ready_pending"
        assert update["data"]["slots"][1]["occupant"] == "bob"

        ws.send_json({"event": "heartbeat", "data": {"timestamp": 1}})
        assert ws.receive_json() == {"event": "pong", "data": {"timestamp": 1}}

        ws.send_json({"event": "dance"})
        assert ws.receive_json()["data"]["code"] == "unknown_event"


def test_websocket_unknown_room(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/battle/nope/alice") as ws:
            ws.receive_json()


def test_room_limits_follow_settings(monkeypatch):
    monkeypatch.setattr(config, "_settings", Settings(MAX_SECRET_LENGTH=4, MAX_ROOM_NAME_LENGTH=5))
    monkeypatch.setattr(dependencies, "_match_engine", None)

    with TestClient(app) as test_client:
        response = test_client.post(
            "/api/battle/rooms/",
            json={"name": "x" * 21, "visibility": "public"},
            headers=ALICE,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_ARGUMENT"

        response = test_client.post(
            "/api/battle/rooms/",
            json={"name": "room", "visibility": "private", "password": "p" * 10},
            headers=ALICE,
        )
        assert response.status_code == 422

        response = test_client.post(
            "/api/battle/rooms/",
            json={"name": "room", "visibility": "private", "password": "abcd"},
            headers=ALICE,
        )
        assert response.status_code == 201
