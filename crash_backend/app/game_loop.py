# crash_backend/app/game_loop.py

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.engine import CrashEngine
from app.game_logic import EntropySourceError

logger = logging.getLogger("uvicorn.error")


class GameLoop:
    """Ticks the engine every `tick_ms` on the running event loop until stopped."""

    def __init__(
        self,
        engine: CrashEngine,
        tick_ms: Optional[int] = None,
        on_tick: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.engine = engine
        self.tick_ms = tick_ms or engine.config.tick_ms
        self.on_tick = on_tick
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Game loop started, tick every {self.tick_ms} ms")

    async def stop(self) -> None:
        """Cancels the loop and waits for it, so no tick runs after this returns."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Game loop stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.tick_ms / 1000
        next_tick = loop.time()
        while True:
            try:
                self.engine.tick()
            except EntropySourceError:
                # No weaker source to fall back to; the round waits for the next tick.
                logger.exception("Round start failed: random source unavailable")
            self.ticks += 1
            if self.on_tick is not None:
                await self.on_tick()

            next_tick += interval
            delay = next_tick - loop.time()
            if delay < 0:
                # fell behind; the engine measures time itself, so drop the missed ticks
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)
