# tests/test_api.py

import pytest
from fastapi.testclient import TestClient

from app.game_logic import duration_for_multiplier
from app.main import create_app


@pytest.fixture
def engine(make_engine):
    return make_engine([2.0, 3.0])


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_state_during_betting(client):
    assert client.get("/state").json() == {
        "phase": "betting",
        "multiplier": 1.0,
        "crashPoint": None,
        "elapsedMs": 0,
        "bettingTimeLeftMs": 5000,
    }


def test_place_and_cancel_wager(client):
    r = client.post("/wager", json={"amount": 50})
    assert r.json() == {"ok": True, "balance": 950}
    assert client.get("/balance").json() == {"balance": 950}
    assert client.get("/wager").json() == {"wager": {"amount": 50, "cashedOutAt": None, "profit": None}}

    assert client.post("/wager", json={"amount": 10}).json() == {"ok": False, "balance": 950}

    assert client.post("/wager/cancel").json() == {"ok": True, "balance": 1000}
    assert client.get("/wager").json() == {"wager": None}


@pytest.mark.parametrize("body", [{"amount": 0}, {"amount": -5}, {"amount": "lots"}, {}])
def test_invalid_wager_body(client, body):
    assert client.post("/wager", json=body).status_code == 422
    assert client.get("/balance").json() == {"balance": 1000}


def test_over_balance_wager_is_rejected(client):
    assert client.post("/wager", json={"amount": 5000}).json() == {"ok": False, "balance": 1000}


def test_crash_point_is_hidden_while_running(client, clock):
    clock.set(6000)
    state = client.get("/state").json()
    # queries don't advance the round; a command does
    assert state["phase"] == "betting"
    client.post("/cashout")
    state = client.get("/state").json()
    assert state["phase"] == "running"
    assert state["crashPoint"] is None


def test_cash_out_flow(client, clock):
    client.post("/wager", json={"amount": 50})
    assert client.post("/cashout").json()["ok"] is False

    clock.set(5000 + duration_for_multiplier(1.5))
    body = client.post("/cashout").json()
    assert body["ok"] is True
    assert body["wager"]["cashedOutAt"] == pytest.approx(1.5, rel=1e-3)
    assert body["balance"] == pytest.approx(950 + 50 * body["wager"]["cashedOutAt"])

    clock.set(12_000)
    client.post("/cashout")
    assert client.get("/history").json() == {"history": [2.0]}
    state = client.get("/state").json()
    assert state["phase"] == "crashed"
    assert state["crashPoint"] == 2.0


def test_websocket_initial_sync_and_commands(engine):
    app = create_app(engine=engine)
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            assert first["type"] == "state"
            assert first["data"]["is_initial_sync"] is True
            assert first["data"]["phase"] == "betting"
            assert first["data"]["history"] == []
            assert ws.receive_json() == {"type": "balance_update", "data": {"balance": 1000}}

            ws.send_json({"type": "place_bet", "amount": 10})
            messages = [ws.receive_json() for _ in range(3)]
            by_type = {m["type"]: m["data"] for m in messages}
            assert by_type["bet_confirm"] == {"amount": 10}
            assert by_type["balance_update"] == {"balance": 990}
            assert by_type["wager_placed"]["balance"] == 990

            ws.send_json({"type": "cash_out"})
            assert ws.receive_json() == {"type": "bet_error", "data": {"message": "Cash out rejected."}}

            ws.send_text("not json")
            assert ws.receive_json() == {"type": "bet_error", "data": {"message": "Malformed message."}}

            ws.send_json({"type": "place_bet", "amount": "x"})
            assert ws.receive_json() == {"type": "bet_error", "data": {"message": "Invalid amount."}}

    assert not app.state.game_loop.running
