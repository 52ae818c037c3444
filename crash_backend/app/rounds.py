# crash_backend/app/rounds.py

import logging
import math
from dataclasses import dataclass

from app.config import EngineConfig
from app.game_logic import CrashPointGenerator, EntropySourceError, duration_for_multiplier, multiplier_at
from app.history import HistoryLog
from app.ledger import Wager, WagerLedger
from app.round_state import RoundPhase, RoundState

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Transition:
    state: RoundState
    # Set on a crash that settled a pending wager as lost.
    lost_wager: Wager | None = None

    @property
    def phase(self) -> RoundPhase:
        return self.state.phase


class RoundScheduler:
    """
    Drives the round through Betting -> Running -> Crashed -> Betting.

    Time comes from the injected clock and every phase is anchored to the
    moment it was due to start, not to the tick that noticed it, so late or
    uneven ticks never shift later rounds. A single advance() can cross
    several transitions if the previous call was long ago.
    """

    def __init__(
        self,
        clock,
        generator: CrashPointGenerator,
        ledger: WagerLedger,
        history: HistoryLog,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self._clock = clock
        self._generator = generator
        self._ledger = ledger
        self._history = history

        self._phase_start = clock.now_ms()
        self._last_now = self._phase_start
        # Set while a round start is waiting on a failed crash-point draw.
        self._draw_failed = False
        self._state = RoundState.betting(self.config.betting_window_ms)

    @property
    def state(self) -> RoundState:
        return self._state

    def advance(self) -> list[Transition]:
        """Brings the round up to the clock's current time and returns the transitions made."""
        # a clock reading behind the last one counts as no time passing
        now = max(self._clock.now_ms(), self._last_now)
        self._last_now = now

        transitions = []
        while True:
            transition = self._step(now)
            if transition is None:
                return transitions
            transitions.append(transition)

    def _step(self, now: float) -> Transition | None:
        phase = self._state.phase
        if phase == RoundPhase.BETTING:
            return self._step_betting(now)
        if phase == RoundPhase.RUNNING:
            return self._step_running(now)
        return self._step_crashed(now)

    def _step_betting(self, now: float) -> Transition | None:
        deadline = self._phase_start + self.config.betting_window_ms
        if now < deadline:
            left = min(self.config.betting_window_ms, math.ceil(deadline - now))
            self._state = self._state.evolve(betting_time_left_ms=left)
            return None

        self._state = self._state.evolve(betting_time_left_ms=0)
        try:
            crash_point = self._generator.generate_crash_point()
        except EntropySourceError:
            # The round stays in Betting and the draw is retried on the next advance.
            self._draw_failed = True
            raise

        # A round whose start was held up by a failed draw begins when the draw
        # succeeds; the outage is not counted as running time.
        self._phase_start = now if self._draw_failed else deadline
        self._draw_failed = False
        self._state = RoundState(phase=RoundPhase.RUNNING, crash_point=crash_point)
        logger.info("Round started")
        return Transition(self._state)

    def _step_running(self, now: float) -> Transition | None:
        elapsed_ms = int(now - self._phase_start)
        multiplier = multiplier_at(elapsed_ms)
        crash_point = self._state.crash_point

        if multiplier < crash_point:
            self._state = self._state.evolve(multiplier=multiplier, elapsed_ms=elapsed_ms)
            return None

        crash_moment = self._phase_start + duration_for_multiplier(crash_point)
        self._phase_start = min(crash_moment, now)
        self._state = RoundState(
            phase=RoundPhase.CRASHED,
            multiplier=crash_point,
            crash_point=crash_point,
            elapsed_ms=elapsed_ms,
        )
        self._history.record(crash_point)
        lost_wager = self._ledger.settle_crash()
        logger.info(f"Round crashed at {crash_point:.2f}x")
        return Transition(self._state, lost_wager)

    def _step_crashed(self, now: float) -> Transition | None:
        next_round_at = self._phase_start + self.config.crashed_delay_ms
        if now < next_round_at:
            return None

        self._phase_start = next_round_at
        self._state = RoundState.betting(self.config.betting_window_ms)
        self._ledger.clear()
        return Transition(self._state)
