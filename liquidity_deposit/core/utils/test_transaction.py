from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from liquidity_deposit.core.constants.erc20_abi import ERC20_ABI
from liquidity_deposit.core.errors import TransactionReverted
from liquidity_deposit.core.utils.transaction import (
    _get_transaction_from_address,
    encode_call,
    gas_limit_transaction,
    nonce_transaction,
    send_transaction,
    wait_for_transaction_receipt,
)
from liquidity_deposit.core.utils.web3 import get_transaction_chain_id

RANDOM_USER_0 = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
TX_MODULE = "liquidity_deposit.core.utils.transaction"


class _Web3sCtx:
    def __init__(self, web3s):
        self._web3s = web3s

    async def __aenter__(self):
        return self._web3s

    async def __aexit__(self, *a):
        pass


def _mock_web3(**eth_attrs):
    web3 = MagicMock()
    for name, value in eth_attrs.items():
        setattr(web3.eth, name, value)
    return web3


class TestGetChainId:
    def test_valid_chain_id(self):
        assert get_transaction_chain_id({"chainId": "8453"}) == 8453

    def test_missing_chain_id(self):
        with pytest.raises(ValueError, match="does not contain chainId"):
            get_transaction_chain_id({})


class TestGetFromAddress:
    def test_checksums(self):
        tx = {"from": RANDOM_USER_0.lower()}
        assert _get_transaction_from_address(tx) == RANDOM_USER_0

    def test_missing_from(self):
        with pytest.raises(ValueError, match="does not contain from"):
            _get_transaction_from_address({})


def test_encode_call_builds_approve_transaction():
    tx = encode_call(
        target="0x1111111111111111111111111111111111111111",
        abi=ERC20_ABI,
        fn_name="approve",
        args=[RANDOM_USER_0, 1],
        from_address=RANDOM_USER_0,
        chain_id=8453,
    )
    assert tx["data"].startswith("0x095ea7b3")
    assert tx["value"] == 0
    assert tx["chainId"] == 8453


def test_encode_call_unknown_function():
    with pytest.raises(ValueError, match="Failed to encode transfer"):
        encode_call(
            target="0x1111111111111111111111111111111111111111",
            abi=ERC20_ABI,
            fn_name="transfer",
            args=[RANDOM_USER_0, 1],
            from_address=RANDOM_USER_0,
            chain_id=8453,
        )


@pytest.mark.asyncio
async def test_nonce_uses_highest_pending_nonce():
    web3s = [
        _mock_web3(get_transaction_count=AsyncMock(return_value=4)),
        _mock_web3(get_transaction_count=AsyncMock(return_value=7)),
    ]
    with patch(f"{TX_MODULE}.web3s_from_chain_id", return_value=_Web3sCtx(web3s)):
        tx = await nonce_transaction({"chainId": 8453, "from": RANDOM_USER_0})
    assert tx["nonce"] == 7


@pytest.mark.asyncio
async def test_gas_limit_buffers_best_estimate():
    web3s = [_mock_web3(estimate_gas=AsyncMock(return_value=100_000))]
    with patch(f"{TX_MODULE}.web3s_from_chain_id", return_value=_Web3sCtx(web3s)):
        tx = await gas_limit_transaction({"chainId": 8453, "gas": 1})
    assert tx["gas"] == 130_000


@pytest.mark.asyncio
async def test_gas_limit_failure_is_a_revert():
    web3s = [_mock_web3(estimate_gas=AsyncMock(side_effect=Exception("execution reverted")))]
    with patch(f"{TX_MODULE}.web3s_from_chain_id", return_value=_Web3sCtx(web3s)):
        with pytest.raises(TransactionReverted, match="Gas estimation failed"):
            await gas_limit_transaction({"chainId": 8453})


@pytest.mark.asyncio
async def test_wait_for_receipt_raises_on_status_zero():
    web3 = _mock_web3(
        wait_for_transaction_receipt=AsyncMock(return_value={"status": 0})
    )
    with patch(f"{TX_MODULE}.web3_from_chain_id", return_value=_Web3sCtx(web3)):
        with pytest.raises(TransactionReverted) as exc_info:
            await wait_for_transaction_receipt(8453, "abc")
    assert exc_info.value.tx_hash == "0xabc"


@pytest.mark.asyncio
async def test_send_transaction_pipeline():
    tx = {"chainId": 8453, "from": RANDOM_USER_0}
    sign = AsyncMock(return_value=b"signed")
    with (
        patch(f"{TX_MODULE}.gas_limit_transaction", new_callable=AsyncMock) as gas,
        patch(f"{TX_MODULE}.nonce_transaction", new_callable=AsyncMock) as nonce,
        patch(f"{TX_MODULE}.gas_price_transaction", new_callable=AsyncMock) as price,
        patch(
            f"{TX_MODULE}.broadcast_transaction",
            new_callable=AsyncMock,
            return_value="0xfeed",
        ) as broadcast,
    ):
        gas.side_effect = lambda t: {**t, "gas": 1}
        nonce.side_effect = lambda t: {**t, "nonce": 2}
        price.side_effect = lambda t: {**t, "maxFeePerGas": 3}
        assert await send_transaction(tx, sign) == "0xfeed"

    signed_tx = sign.call_args.args[0]
    assert signed_tx["gas"] == 1
    assert signed_tx["nonce"] == 2
    assert signed_tx["maxFeePerGas"] == 3
    broadcast.assert_awaited_once_with(8453, b"signed")
