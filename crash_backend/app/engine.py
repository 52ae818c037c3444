# crash_backend/app/engine.py

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from app.clock import MonotonicClock
from app.config import EngineConfig
from app.game_logic import CrashPointGenerator
from app.history import HistoryLog
from app.ledger import Wager, WagerLedger
from app.round_state import RoundPhase, RoundState
from app.rounds import RoundScheduler, Transition

logger = logging.getLogger("uvicorn.error")

Listener = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class RoundSnapshot:
    """What a host may show about the round. `crash_point` is None until the round has crashed."""
    phase: RoundPhase
    multiplier: float
    crash_point: Optional[float]
    elapsed_ms: int
    betting_time_left_ms: int

    @classmethod
    def from_state(cls, state: RoundState) -> "RoundSnapshot":
        revealed = state.crash_point if state.phase == RoundPhase.CRASHED else None
        return cls(
            phase=state.phase,
            multiplier=state.multiplier,
            crash_point=revealed,
            elapsed_ms=state.elapsed_ms,
            betting_time_left_ms=state.betting_time_left_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "multiplier": self.multiplier,
            "crashPoint": self.crash_point,
            "elapsedMs": self.elapsed_ms,
            "bettingTimeLeftMs": self.betting_time_left_ms,
        }


class CrashEngine:
    """
    One crash game: round scheduler, wager ledger and history behind a single lock.

    Every command first brings the round up to the current time, so a cash-out
    that arrives after the crash moment is rejected even if no tick has run yet.
    Queries never move the round, so repeated queries between mutations agree.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock=None,
        generator: CrashPointGenerator | None = None,
    ):
        self.config = config or EngineConfig()
        self.clock = clock or MonotonicClock()
        self.ledger = WagerLedger(self.config.starting_balance)
        self.history_log = HistoryLog(self.config.history_size)
        self.scheduler = RoundScheduler(
            self.clock,
            generator or CrashPointGenerator(),
            self.ledger,
            self.history_log,
            self.config,
        )
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    # ---- queries ----

    def snapshot(self) -> RoundSnapshot:
        with self._lock:
            return RoundSnapshot.from_state(self.scheduler.state)

    def history(self) -> tuple[float, ...]:
        with self._lock:
            return self.history_log.entries()

    def balance(self) -> float:
        with self._lock:
            return self.ledger.balance

    def wager(self) -> Wager | None:
        with self._lock:
            return self.ledger.wager

    # ---- time ----

    def tick(self) -> List[Transition]:
        with self._lock:
            transitions = self.scheduler.advance()
            events = self._transition_events(transitions)
        self._emit(events)
        return transitions

    # ---- commands ----

    def place_wager(self, amount: float) -> bool:
        with self._lock:
            events = self._transition_events(self.scheduler.advance())
            ok = self.ledger.place_wager(self.scheduler.state, amount)
            if ok:
                events.append(("wager_placed", self._wager_payload()))
        self._emit(events)
        return ok

    def cancel_wager(self) -> bool:
        with self._lock:
            events = self._transition_events(self.scheduler.advance())
            wager = self.ledger.wager
            ok = self.ledger.cancel_wager(self.scheduler.state)
            if ok:
                events.append(("wager_cancelled", {"wager": wager.to_dict(), "balance": self.ledger.balance}))
        self._emit(events)
        return ok

    def cash_out(self) -> bool:
        with self._lock:
            events = self._transition_events(self.scheduler.advance())
            ok = self.ledger.cash_out(self.scheduler.state)
            if ok:
                events.append(("wager_cashed_out", self._wager_payload()))
        self._emit(events)
        return ok

    # ---- events ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers `listener(event_type, payload)`. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _wager_payload(self) -> Dict[str, Any]:
        wager = self.ledger.wager
        return {"wager": wager.to_dict() if wager else None, "balance": self.ledger.balance}

    def _transition_events(self, transitions: List[Transition]) -> List[tuple]:
        events = []
        for t in transitions:
            if t.phase == RoundPhase.CRASHED:
                events.append(("round_crashed", {
                    "crashPoint": t.state.crash_point,
                    "history": list(self.history_log.entries()),
                }))
                if t.lost_wager is not None:
                    events.append(("wager_lost", {"wager": t.lost_wager.to_dict(), "balance": self.ledger.balance}))
            events.append(("phase_changed", RoundSnapshot.from_state(t.state).to_dict()))
        return events

    def _emit(self, events: List[tuple]) -> None:
        if not events:
            return
        with self._lock:
            listeners = list(self._listeners)
        for event_type, payload in events:
            for listener in listeners:
                try:
                    listener(event_type, payload)
                except Exception:
                    logger.exception(f"Listener failed on {event_type}")
