from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from liquidity_deposit.adapters.deposit_adapter.adapter import DepositAdapter
from liquidity_deposit.core.constants.chains import PERMIT2_ADDRESS
from liquidity_deposit.core.errors import CalculationFailed, PreparationFailed
from liquidity_deposit.core.models import (
    AmountQuote,
    DepositIntent,
    NeedsErc20Approval,
    PoolState,
    RawTransaction,
    ReadyToMint,
    TickRange,
    TokenRef,
)

OWNER = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
POSITION_MANAGER = "0x5555555555555555555555555555555555555555"
CHAIN_ID = 84532

TOKEN_A = TokenRef("aUSDC", "0x1111111111111111111111111111111111111111", 6)
TOKEN_B = TokenRef("aETH", "0x3333333333333333333333333333333333333333", 18)
INTENT = DepositIntent(TOKEN_A, TOKEN_B, TickRange(-600, 600), "100", "0.05")


def _client() -> MagicMock:
    client = MagicMock()
    client.get_pool_state = AsyncMock(
        return_value=PoolState(tick=0, price=1.0, sqrt_price_x96=1 << 96)
    )
    client.calculate = AsyncMock()
    client.prepare = AsyncMock()
    client.close = AsyncMock()
    return client


def _wallet() -> MagicMock:
    wallet = MagicMock()
    wallet.address = OWNER
    wallet.chain_id = CHAIN_ID
    wallet.approve = AsyncMock(return_value="0xapprove")
    wallet.send_raw_transaction = AsyncMock(return_value="0xmint")
    wallet.wait_for_receipt = AsyncMock(return_value="confirmed")
    return wallet


def _adapter(client=None, wallet=None) -> DepositAdapter:
    return DepositAdapter(
        {"chain_id": CHAIN_ID, "tick_spacing": 60},
        liquidity_client=client or _client(),
        wallet=wallet,
    )


def test_adapter_type():
    adapter = _adapter()
    assert adapter.adapter_type == "LIQUIDITY_DEPOSIT"
    assert adapter.tick_spacing == 60
    assert adapter.chain_id == CHAIN_ID


@pytest.mark.asyncio
async def test_resolve_range_reads_pool_tick():
    client = _client()
    adapter = _adapter(client)

    ok, result = await adapter.resolve_range(TOKEN_A, TOKEN_B, "±3%")

    assert ok is True
    assert result == TickRange(-300, 240)
    client.get_pool_state.assert_awaited_once()


@pytest.mark.asyncio
async def test_full_range_needs_no_pool_state():
    client = _client()
    adapter = _adapter(client)

    ok, result = await adapter.resolve_range(TOKEN_A, TOKEN_B, "full range")

    assert ok is True
    assert result == TickRange(-887220, 887220)
    client.get_pool_state.assert_not_called()


@pytest.mark.asyncio
async def test_resolve_range_reports_bad_preset():
    ok, result = await _adapter().resolve_range(TOKEN_A, TOKEN_B, "±150%", center_tick=0)
    assert ok is False
    assert isinstance(result, str)


@pytest.mark.asyncio
async def test_price_bounds_in_token1_per_token0():
    intent = DepositIntent(
        TokenRef("A", "0x1111111111111111111111111111111111111111", 18),
        TokenRef("B", "0x3333333333333333333333333333333333333333", 18),
        TickRange(0, 6932),
        "1",
    )
    ok, (low, high) = await _adapter().price_bounds(intent)
    assert ok is True
    assert low == pytest.approx(1.0)
    assert high == pytest.approx(2.0, rel=1e-3)


@pytest.mark.asyncio
async def test_quote_fills_paired_amount():
    client = _client()
    client.calculate.return_value = AmountQuote(
        paired_amount=50_000_000_000_000_000, liquidity=1, current_tick=0
    )

    ok, result = await _adapter(client).quote(INTENT.with_amounts(token1_amount=""))

    assert ok is True
    assert result.token1_amount == "0.05"


@pytest.mark.asyncio
async def test_quote_failure_is_status_false():
    client = _client()
    client.calculate.side_effect = CalculationFailed("Pool not found")

    ok, result = await _adapter(client).quote(INTENT)

    assert ok is False
    assert result == "Pool not found"


@pytest.mark.asyncio
async def test_deposit_requires_wallet():
    ok, result = await _adapter().deposit(INTENT)
    assert ok is False
    assert "wallet" in result


@pytest.mark.asyncio
async def test_deposit_runs_to_completion():
    client = _client()
    client.prepare.side_effect = [
        NeedsErc20Approval(
            token=TOKEN_A.address, spender=PERMIT2_ADDRESS, amount=1, token_symbol="aUSDC"
        ),
        ReadyToMint(transaction=RawTransaction(to=POSITION_MANAGER, data="0x01")),
    ]
    wallet = _wallet()
    adapter = _adapter(client, wallet)

    ok, tx_hash = await adapter.deposit(INTENT)

    assert ok is True
    assert tx_hash == "0xmint"
    wallet.approve.assert_awaited_once_with(TOKEN_A.address, PERMIT2_ADDRESS, 1)
    assert adapter.notifications[-1].level == "success"


@pytest.mark.asyncio
async def test_deposit_surfaces_preparation_error():
    client = _client()
    client.prepare.side_effect = PreparationFailed("Insufficient balance")

    ok, result = await _adapter(client, _wallet()).deposit(INTENT)

    assert ok is False
    assert result == "Insufficient balance"


@pytest.mark.asyncio
async def test_close_closes_client():
    client = _client()
    await _adapter(client).close()
    client.close.assert_awaited_once()
