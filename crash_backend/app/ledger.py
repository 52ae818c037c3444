# crash_backend/app/ledger.py

import logging
import math
from dataclasses import dataclass
from typing import Union

from app.round_state import RoundPhase, RoundState

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Pending:
    """Stake is at risk; the round has not settled the wager yet."""


@dataclass(frozen=True)
class CashedOut:
    multiplier: float
    profit: float


@dataclass(frozen=True)
class Lost:
    profit: float


WagerOutcome = Union[Pending, CashedOut, Lost]


@dataclass(frozen=True)
class Wager:
    amount: float
    outcome: WagerOutcome = Pending()

    @property
    def is_settled(self) -> bool:
        return not isinstance(self.outcome, Pending)

    @property
    def cashed_out_at(self) -> float | None:
        if isinstance(self.outcome, CashedOut):
            return self.outcome.multiplier
        return None

    @property
    def profit(self) -> float | None:
        if isinstance(self.outcome, (CashedOut, Lost)):
            return self.outcome.profit
        return None

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "cashedOutAt": self.cashed_out_at,
            "profit": self.profit,
        }


class WagerLedger:
    """
    The player's balance and their single wager for the current round.

    Commands check the round state they are given and return False instead of
    raising when the action does not fit it; a rejected command changes nothing.
    """

    def __init__(self, balance: float = 1000.0):
        if balance < 0:
            raise ValueError("starting balance must be non-negative")
        self._balance = float(balance)
        self._wager: Wager | None = None

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def wager(self) -> Wager | None:
        return self._wager

    def place_wager(self, state: RoundState, amount: float) -> bool:
        if state.phase != RoundPhase.BETTING:
            logger.debug(f"place_wager rejected: phase is {state.phase.value}")
            return False
        if self._wager is not None:
            logger.debug("place_wager rejected: a wager is already live")
            return False
        if not math.isfinite(amount) or amount <= 0 or amount > self._balance:
            logger.debug(f"place_wager rejected: amount {amount!r} against balance {self._balance!r}")
            return False

        self._balance -= amount
        self._wager = Wager(amount=amount)
        assert self._balance >= 0
        return True

    def cancel_wager(self, state: RoundState) -> bool:
        if state.phase != RoundPhase.BETTING or self._wager is None:
            logger.debug(f"cancel_wager rejected: phase={state.phase.value} wager={self._wager!r}")
            return False

        assert not self._wager.is_settled
        self._balance += self._wager.amount
        self._wager = None
        return True

    def cash_out(self, state: RoundState) -> bool:
        wager = self._wager
        if state.phase != RoundPhase.RUNNING or wager is None or wager.is_settled:
            logger.debug(f"cash_out rejected: phase={state.phase.value} wager={wager!r}")
            return False

        multiplier = state.multiplier
        profit = wager.amount * multiplier - wager.amount
        self._balance += wager.amount + profit
        self._wager = Wager(amount=wager.amount, outcome=CashedOut(multiplier=multiplier, profit=profit))
        return True

    def settle_crash(self) -> Wager | None:
        """
        Marks a still-pending wager as lost. The stake left the balance when the
        wager was placed, so the balance is not touched again here.
        Returns the wager if this call settled it.
        """
        wager = self._wager
        if wager is None or wager.is_settled:
            return None
        self._wager = Wager(amount=wager.amount, outcome=Lost(profit=-wager.amount))
        return self._wager

    def clear(self) -> None:
        self._wager = None
