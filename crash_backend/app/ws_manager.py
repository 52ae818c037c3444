# crash_backend/app/ws_manager.py

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket

from app.engine import CrashEngine
from app.event_log import log_event
from app.round_state import RoundPhase

logger = logging.getLogger("uvicorn.error")


class WebSocketManager:
    """Pushes engine events to connected clients and relays their wager commands."""

    def __init__(self, engine: CrashEngine):
        self.active_connections: dict[str, WebSocket] = {}
        self.engine = engine
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        self._unsubscribe = None
        self._ticks = 0
        # Pending event-log writes; held so they are not collected mid-flight.
        self._sink_tasks: set[asyncio.Task] = set()

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Starts queueing engine events for dispatch on `loop`."""
        self._loop = loop
        self._events = asyncio.Queue()
        if self._unsubscribe is None:
            self._unsubscribe = self.engine.subscribe(self.on_engine_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._loop = None

    def on_engine_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        # Engine listeners may run on any thread; hand the event to the loop.
        if self._loop is None or self._events is None:
            return
        self._loop.call_soon_threadsafe(self._events.put_nowait, (event_type, payload))

    async def dispatch_events(self) -> None:
        """Forwards queued engine events to every client and to the event log. Runs until cancelled."""
        while True:
            event_type, payload = await self._events.get()
            await self.broadcast({"type": event_type, "data": payload})
            task = asyncio.create_task(log_event(event_type, payload))
            self._sink_tasks.add(task)
            task.add_done_callback(self._sink_tasks.discard)

    async def on_tick(self) -> None:
        """Called after every engine tick; sends a throttled snapshot while the round runs."""
        self._ticks += 1
        if self._ticks % self.engine.config.broadcast_every_ticks:
            return
        snapshot = self.engine.snapshot()
        if snapshot.phase == RoundPhase.RUNNING:
            await self.broadcast({"type": "tick", "data": snapshot.to_dict()})

    async def connect(self, websocket: WebSocket, client_id: str):
        self.active_connections[client_id] = websocket

        state = self.engine.snapshot().to_dict()
        state["history"] = list(self.engine.history())
        state["is_initial_sync"] = True
        await self.send_to_client(client_id, {"type": "state", "data": state})
        await self.send_to_client(client_id, {"type": "balance_update", "data": {"balance": self.engine.balance()}})

    def disconnect(self, client_id: str):
        """Removes a client's connection."""
        if client_id in self.active_connections:
            del self.active_connections[client_id]
            logger.info(f"Client {client_id} removed")

    async def send_to_client(self, client_id: str, message: dict):
        """Sends a JSON message to a specific client."""
        if client_id in self.active_connections:
            try:
                await self.active_connections[client_id].send_json(message)
            except Exception as e:
                logger.warning(f"Failed to send message to {client_id}: {e}. Disconnecting.")
                self.disconnect(client_id)

    async def broadcast(self, message: dict):
        """Sends a JSON message to all connected clients."""
        for client_id, connection in list(self.active_connections.items()):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Failed to broadcast to {client_id}: {e}. Disconnecting.")
                self.disconnect(client_id)

    async def handle_message(self, client_id: str, data: Any) -> None:
        """Applies one client command to the engine and answers the sender."""
        msg_type = data.get("type") if isinstance(data, dict) else None

        if msg_type == "place_bet":
            try:
                amount = float(data.get("amount"))
            except (TypeError, ValueError):
                await self.send_to_client(client_id, {"type": "bet_error", "data": {"message": "Invalid amount."}})
                return
            if self.engine.place_wager(amount):
                await self.send_to_client(client_id, {"type": "bet_confirm", "data": {"amount": amount}})
                await self._send_balance(client_id)
            else:
                await self.send_to_client(client_id, {"type": "bet_error", "data": {"message": "Bet rejected."}})

        elif msg_type == "cancel_bet":
            if self.engine.cancel_wager():
                await self.send_to_client(client_id, {"type": "bet_cancelled", "data": {}})
                await self._send_balance(client_id)
            else:
                await self.send_to_client(client_id, {"type": "bet_error", "data": {"message": "Nothing to cancel."}})

        elif msg_type == "cash_out":
            if self.engine.cash_out():
                wager = self.engine.wager()
                await self.send_to_client(client_id, {
                    "type": "bet_result",
                    "data": {
                        "winAmount": round(wager.amount + wager.profit, 2),
                        "cashedOutAt": round(wager.cashed_out_at, 2),
                    },
                })
                await self._send_balance(client_id)
            else:
                await self.send_to_client(client_id, {"type": "bet_error", "data": {"message": "Cash out rejected."}})

        else:
            await self.send_to_client(client_id, {"type": "bet_error", "data": {"message": f"Unknown message type: {msg_type!r}"}})

    async def _send_balance(self, client_id: str) -> None:
        await self.send_to_client(client_id, {"type": "balance_update", "data": {"balance": self.engine.balance()}})
