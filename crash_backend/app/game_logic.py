# crash_backend/app/game_logic.py

import math
import secrets
from typing import Callable

# Exponential growth rate of the multiplier, per second.
GROWTH_RATE = 0.1


class EntropySourceError(RuntimeError):
    """The uniform random source could not produce a value. Fatal to the round."""


def _secure_uniform() -> float:
    # 53 bits fills a double's mantissa, so every value is exactly representable
    # and the result is always strictly below 1.
    return secrets.randbits(53) / (1 << 53)


class CrashPointGenerator:
    """
    Draws one crash point per round.

    With `u` uniform in [0, 1) the crash point is `(1 - HOUSE_EDGE) / (1 - u)`,
    floored at 1.00. For any cash-out target `m` the probability of the round
    reaching `m` is `(1 - HOUSE_EDGE) / m`, so the expected return of a bet
    that cashes out at `m` is `1 - HOUSE_EDGE` whatever `m` is.

    The result is clamped to MAX_CRASH_POINT. Above the cap a player can never
    win, which moves a sliver of the tail to the house. Targets at or below the
    cap keep the exact expected return.
    """
    HOUSE_EDGE = 0.03
    MAX_CRASH_POINT = 1000.0

    def __init__(self, uniform: Callable[[], float] | None = None):
        self._uniform = uniform or _secure_uniform

    def draw_uniform(self) -> float:
        try:
            u = self._uniform()
        except (OSError, NotImplementedError) as e:
            # No fallback to a weaker generator: that would silently break fairness.
            raise EntropySourceError(f"random source unavailable: {e}") from e
        if not 0.0 <= u < 1.0:
            raise ValueError(f"uniform source returned {u!r}, expected a value in [0, 1)")
        return u

    def generate_crash_point(self) -> float:
        u = self.draw_uniform()
        crash_point = max(1.0, (1 - self.HOUSE_EDGE) / (1 - u))
        return min(crash_point, self.MAX_CRASH_POINT)


def multiplier_at(elapsed_ms: int) -> float:
    """Multiplier after `elapsed_ms` of running time: e^(0.1 * seconds)."""
    if elapsed_ms < 0:
        raise ValueError("elapsed_ms must be non-negative")
    return math.exp(GROWTH_RATE * elapsed_ms / 1000)


def duration_for_multiplier(multiplier: float) -> float:
    """Inverse of multiplier_at, in milliseconds."""
    if multiplier <= 1.0:
        return 0.0
    return math.log(multiplier) / GROWTH_RATE * 1000
