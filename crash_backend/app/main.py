# crash_backend/app/main.py

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from app.config import EngineConfig, load_config
from app.engine import CrashEngine
from app.event_log import ensure_clickhouse
from app.game_loop import GameLoop
from app.ws_manager import WebSocketManager

logger = logging.getLogger("uvicorn.error")


class WagerRequest(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False)


def create_app(engine: Optional[CrashEngine] = None, config: Optional[EngineConfig] = None) -> FastAPI:
    if engine is None:
        engine = CrashEngine(config or load_config())
    manager = WebSocketManager(engine)
    game_loop = GameLoop(engine, on_tick=manager.on_tick)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager.attach(asyncio.get_running_loop())
        dispatcher = asyncio.create_task(manager.dispatch_events())
        try:
            st = await ensure_clickhouse()
            logger.info(f"[CH] enabled={st.get('enabled')} reachable={st.get('reachable')} err={st.get('error')}")
        except Exception as e:
            logger.warning(f"ensure_clickhouse failed: {e}")
        game_loop.start()
        try:
            yield
        finally:
            await game_loop.stop()
            manager.detach()
            dispatcher.cancel()
            try:
                await dispatcher
            except asyncio.CancelledError:
                pass

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine
    app.state.manager = manager
    app.state.game_loop = game_loop

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/state")
    async def get_state():
        return engine.snapshot().to_dict()

    @app.get("/history")
    async def get_history():
        return {"history": list(engine.history())}

    @app.get("/balance")
    async def get_balance():
        return {"balance": engine.balance()}

    @app.get("/wager")
    async def get_wager():
        wager = engine.wager()
        return {"wager": wager.to_dict() if wager else None}

    @app.post("/wager")
    async def place_wager(req: WagerRequest):
        ok = engine.place_wager(req.amount)
        logger.info(f"place_wager amount={req.amount} ok={ok}")
        return {"ok": ok, "balance": engine.balance()}

    @app.post("/wager/cancel")
    async def cancel_wager():
        ok = engine.cancel_wager()
        return {"ok": ok, "balance": engine.balance()}

    @app.post("/cashout")
    async def cash_out():
        ok = engine.cash_out()
        wager = engine.wager()
        logger.info(f"cash_out ok={ok} wager={wager}")
        return {"ok": ok, "balance": engine.balance(), "wager": wager.to_dict() if wager else None}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        client_id = uuid.uuid4().hex
        await manager.connect(websocket, client_id)
        logger.info(f"Client {client_id} connected.")

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    await manager.send_to_client(client_id, {"type": "bet_error", "data": {"message": "Malformed message."}})
                    continue
                await manager.handle_message(client_id, data)
        except WebSocketDisconnect:
            manager.disconnect(client_id)
            logger.info(f"Client {client_id} disconnected.")
        except Exception as e:
            logger.exception(f"WS error for client {client_id}: {e}")
            manager.disconnect(client_id)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
