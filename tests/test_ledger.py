# tests/test_ledger.py

import math

import pytest

from app.ledger import CashedOut, Lost, Pending, Wager, WagerLedger
from app.round_state import RoundPhase, RoundState

BETTING = RoundState.betting(5000)


def running(multiplier: float) -> RoundState:
    return RoundState(phase=RoundPhase.RUNNING, multiplier=multiplier, crash_point=100.0, elapsed_ms=1000)


CRASHED = RoundState(phase=RoundPhase.CRASHED, multiplier=2.0, crash_point=2.0, elapsed_ms=7000)


def test_place_then_cancel_restores_balance():
    ledger = WagerLedger(1000.0)

    assert ledger.place_wager(BETTING, 50) is True
    assert ledger.balance == 950
    assert ledger.wager == Wager(amount=50)
    assert ledger.wager.cashed_out_at is None
    assert ledger.wager.profit is None

    assert ledger.cancel_wager(BETTING) is True
    assert ledger.balance == 1000
    assert ledger.wager is None


@pytest.mark.parametrize("amount", [0, -5, 1000.01, math.inf, math.nan])
def test_place_rejects_bad_amounts(amount):
    ledger = WagerLedger(1000.0)
    assert ledger.place_wager(BETTING, amount) is False
    assert ledger.balance == 1000
    assert ledger.wager is None


def test_place_whole_balance():
    ledger = WagerLedger(1000.0)
    assert ledger.place_wager(BETTING, 1000) is True
    assert ledger.balance == 0


def test_only_one_live_wager():
    ledger = WagerLedger(1000.0)
    assert ledger.place_wager(BETTING, 50)
    assert ledger.place_wager(BETTING, 20) is False
    assert ledger.balance == 950
    assert ledger.wager.amount == 50


@pytest.mark.parametrize("state", [running(1.2), CRASHED])
def test_place_and_cancel_outside_betting_are_rejected(state):
    ledger = WagerLedger(1000.0)
    assert ledger.place_wager(state, 50) is False
    assert ledger.balance == 1000

    ledger.place_wager(BETTING, 50)
    assert ledger.cancel_wager(state) is False
    assert ledger.balance == 950
    assert ledger.wager.amount == 50


def test_cancel_without_wager_is_rejected():
    ledger = WagerLedger(1000.0)
    assert ledger.cancel_wager(BETTING) is False
    assert ledger.balance == 1000


def test_cash_out_at_three():
    ledger = WagerLedger(1000.0)
    ledger.place_wager(BETTING, 50)

    assert ledger.cash_out(running(3.0)) is True
    assert ledger.balance == 1100
    assert ledger.wager.profit == 100
    assert ledger.wager.cashed_out_at == 3.0
    assert ledger.wager.outcome == CashedOut(multiplier=3.0, profit=100)

    assert ledger.cash_out(running(4.0)) is False
    assert ledger.balance == 1100
    assert ledger.wager.cashed_out_at == 3.0


def test_cash_out_rejected_while_betting_or_crashed():
    ledger = WagerLedger(1000.0)
    ledger.place_wager(BETTING, 50)
    assert ledger.cash_out(BETTING) is False
    assert ledger.cash_out(CRASHED) is False
    assert ledger.balance == 950
    assert ledger.wager.outcome == Pending()


def test_cash_out_without_wager_is_rejected():
    ledger = WagerLedger(1000.0)
    assert ledger.cash_out(running(2.0)) is False
    assert ledger.balance == 1000


def test_crash_settles_pending_wager_as_loss_without_second_debit():
    ledger = WagerLedger(1000.0)
    ledger.place_wager(BETTING, 50)

    lost = ledger.settle_crash()
    assert lost is ledger.wager
    assert ledger.wager.outcome == Lost(profit=-50)
    assert ledger.wager.profit == -50
    assert ledger.wager.cashed_out_at is None
    assert ledger.balance == 950

    assert ledger.settle_crash() is None
    assert ledger.wager.profit == -50
    assert ledger.balance == 950


def test_crash_leaves_cashed_out_wager_alone():
    ledger = WagerLedger(1000.0)
    ledger.place_wager(BETTING, 50)
    ledger.cash_out(running(2.0))

    assert ledger.settle_crash() is None
    assert ledger.wager.profit == 50
    assert ledger.balance == 1050


def test_clear_drops_wager_without_touching_balance():
    ledger = WagerLedger(1000.0)
    ledger.place_wager(BETTING, 50)
    ledger.settle_crash()
    ledger.clear()
    assert ledger.wager is None
    assert ledger.balance == 950


def test_wager_to_dict():
    wager = Wager(amount=50, outcome=CashedOut(multiplier=2.5, profit=75))
    assert wager.to_dict() == {"amount": 50, "cashedOutAt": 2.5, "profit": 75}
    assert Wager(amount=10).to_dict() == {"amount": 10, "cashedOutAt": None, "profit": None}


def test_negative_starting_balance_rejected():
    with pytest.raises(ValueError):
        WagerLedger(-1)
