# crash_backend/app/round_state.py

from dataclasses import dataclass, replace
from enum import Enum


class RoundPhase(str, Enum):
    BETTING = "betting"
    RUNNING = "running"
    CRASHED = "crashed"


@dataclass(frozen=True)
class RoundState:
    """
    One round's observable values. Frozen: the scheduler swaps in a new
    instance on every tick and transition instead of editing fields.

    `crash_point` is 0 during Betting and is the round's secret until the
    phase is Crashed; anything shown to players goes through the engine's
    snapshot, which hides it.
    """
    phase: RoundPhase
    multiplier: float = 1.0
    crash_point: float = 0.0
    elapsed_ms: int = 0
    betting_time_left_ms: int = 0

    @classmethod
    def betting(cls, betting_window_ms: int) -> "RoundState":
        return cls(phase=RoundPhase.BETTING, betting_time_left_ms=betting_window_ms)

    def evolve(self, **changes) -> "RoundState":
        return replace(self, **changes)
