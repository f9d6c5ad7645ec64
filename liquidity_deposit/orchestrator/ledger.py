"""Per-token completion ledger and the progress view derived from it."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from liquidity_deposit.core.models import DepositIntent


@dataclass(frozen=True)
class CompletionLedger:
    entries: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    @classmethod
    def for_intent(cls, intent: DepositIntent) -> CompletionLedger:
        return cls({token.symbol: False for token in intent.involved_tokens()})

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.entries

    def is_complete(self, symbol: str) -> bool:
        return self.entries.get(symbol, False)

    def with_completed(self, symbols: Iterable[str]) -> CompletionLedger:
        symbols = list(symbols)
        unknown = [s for s in symbols if s not in self.entries]
        if unknown:
            raise KeyError(f"Tokens not tracked by this deposit: {', '.join(unknown)}")
        updated = dict(self.entries)
        for symbol in symbols:
            updated[symbol] = True
        return CompletionLedger(updated)

    def as_dict(self) -> dict[str, bool]:
        return dict(self.entries)


@dataclass(frozen=True)
class CompletionProgress:
    involved: int
    completed: int

    @property
    def is_complete(self) -> bool:
        return self.involved > 0 and self.completed >= self.involved


def involved_count(intent: DepositIntent) -> int:
    return len(intent.involved_tokens())


def completed_count(intent: DepositIntent, ledger: CompletionLedger) -> int:
    return sum(1 for token in intent.involved_tokens() if ledger.is_complete(token.symbol))


def progress(intent: DepositIntent | None, ledger: CompletionLedger) -> CompletionProgress:
    if intent is None:
        return CompletionProgress(0, 0)
    return CompletionProgress(involved_count(intent), completed_count(intent, ledger))
