import pytest

from liquidity_deposit.core.models import DepositIntent, TickRange, TokenRef
from liquidity_deposit.orchestrator.ledger import (
    CompletionLedger,
    completed_count,
    involved_count,
    progress,
)

TOKEN_A = TokenRef("aUSDC", "0x1111111111111111111111111111111111111111", 6)
TOKEN_B = TokenRef("aETH", "0x3333333333333333333333333333333333333333", 18)


def _intent(a: str = "10", b: str = "0.5") -> DepositIntent:
    return DepositIntent(TOKEN_A, TOKEN_B, TickRange(-600, 600), a, b)


def test_for_intent_tracks_only_involved_tokens():
    ledger = CompletionLedger.for_intent(_intent(a="10", b=""))
    assert ledger.as_dict() == {"aUSDC": False}
    assert "aETH" not in ledger


def test_with_completed_returns_new_ledger():
    ledger = CompletionLedger.for_intent(_intent())
    updated = ledger.with_completed(["aUSDC"])

    assert ledger.as_dict() == {"aUSDC": False, "aETH": False}
    assert updated.as_dict() == {"aUSDC": True, "aETH": False}
    # repeated completion is a no-op
    assert updated.with_completed(["aUSDC"]) == updated


def test_with_completed_rejects_untracked_symbol():
    ledger = CompletionLedger.for_intent(_intent(b="0"))
    with pytest.raises(KeyError, match="aETH"):
        ledger.with_completed(["aETH"])


def test_entries_are_read_only():
    ledger = CompletionLedger.for_intent(_intent())
    with pytest.raises(TypeError):
        ledger.entries["aUSDC"] = True


def test_counts_and_progress():
    intent = _intent()
    ledger = CompletionLedger.for_intent(intent).with_completed(["aETH"])

    assert involved_count(intent) == 2
    assert completed_count(intent, ledger) == 1
    assert not progress(intent, ledger).is_complete

    done = ledger.with_completed(["aUSDC"])
    assert progress(intent, done).is_complete


def test_progress_without_intent_is_empty():
    result = progress(None, CompletionLedger())
    assert (result.involved, result.completed) == (0, 0)
    assert not result.is_complete
