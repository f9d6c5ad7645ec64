from __future__ import annotations

from typing import Any, Literal, Protocol

from liquidity_deposit.core.models import (
    AmountQuote,
    DepositIntent,
    PoolState,
    PreparedStep,
    TokenRef,
)


class AmountCalculatorProtocol(Protocol):
    async def calculate(
        self,
        token0: TokenRef,
        token1: TokenRef,
        input_amount: int,
        input_symbol: str,
        tick_lower: int,
        tick_upper: int,
    ) -> AmountQuote: ...


class TransactionPreparerProtocol(Protocol):
    async def prepare(
        self, intent: DepositIntent, token_just_processed: str | None = None
    ) -> PreparedStep: ...


class PoolStateReaderProtocol(Protocol):
    async def get_pool_state(self, token0: TokenRef, token1: TokenRef) -> PoolState: ...


class WalletSignerProtocol(Protocol):
    address: str
    chain_id: int | None

    async def approve(self, token: str, spender: str, amount: int) -> str: ...

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> str: ...

    async def send_raw_transaction(self, to: str, data: str, value: int = 0) -> str: ...

    async def wait_for_receipt(self, tx_hash: str) -> Literal["confirmed", "reverted"]: ...
