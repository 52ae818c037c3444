# crash_backend/app/config.py

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    betting_window_ms: int = 5000
    crashed_delay_ms: int = 3000
    tick_ms: int = 50
    starting_balance: float = 1000.0
    history_size: int = 20
    # While running, a "tick" snapshot goes out every N engine ticks.
    broadcast_every_ticks: int = 2

    def __post_init__(self):
        for name in ("betting_window_ms", "crashed_delay_ms", "tick_ms", "history_size", "broadcast_every_ticks"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.starting_balance < 0:
            raise ValueError("starting_balance must be non-negative")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_config() -> EngineConfig:
    """Builds the engine config from CRASH_* environment variables, falling back to the defaults."""
    defaults = EngineConfig()
    return EngineConfig(
        betting_window_ms=_env_int("CRASH_BETTING_WINDOW_MS", defaults.betting_window_ms),
        crashed_delay_ms=_env_int("CRASH_CRASHED_DELAY_MS", defaults.crashed_delay_ms),
        tick_ms=_env_int("CRASH_TICK_MS", defaults.tick_ms),
        starting_balance=_env_float("CRASH_STARTING_BALANCE", defaults.starting_balance),
        history_size=_env_int("CRASH_HISTORY_SIZE", defaults.history_size),
        broadcast_every_ticks=_env_int("CRASH_BROADCAST_EVERY_TICKS", defaults.broadcast_every_ticks),
    )
