from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.exceptions import Web3Exception

from liquidity_deposit.core.constants.base import (
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    GAS_BUFFER_MULTIPLIER,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_GAS_PRICE_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from liquidity_deposit.core.constants.chains import PRE_EIP_1559_CHAIN_IDS
from liquidity_deposit.core.errors import TransactionReverted
from liquidity_deposit.core.utils.web3 import (
    get_transaction_chain_id,
    web3_from_chain_id,
    web3s_from_chain_id,
)

SignCallback = Callable[[dict[str, Any]], Awaitable[bytes]]
_OFFLINE_WEB3 = Web3()


def _normalize_hash(txn_hash: str | bytes) -> str:
    if isinstance(txn_hash, (bytes, bytearray)):
        txn_hash = bytes(txn_hash).hex()
    return txn_hash if txn_hash.startswith("0x") else f"0x{txn_hash}"


def _get_transaction_from_address(transaction: dict) -> str:
    if "from" not in transaction:
        raise ValueError("Transaction does not contain from address")
    return to_checksum_address(transaction["from"])


async def nonce_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    from_address = _get_transaction_from_address(transaction)

    async with web3s_from_chain_id(get_transaction_chain_id(transaction)) as web3s:
        nonces = await asyncio.gather(
            *[
                web3.eth.get_transaction_count(from_address, block_identifier="pending")
                for web3 in web3s
            ]
        )
    transaction["nonce"] = max(nonces)
    return transaction


async def _priority_fee(web3: AsyncWeb3) -> int:
    fee_history = await web3.eth.fee_history(10, "latest", [80])
    rewards = [r[0] for r in fee_history["reward"]]
    return sum(rewards) // len(rewards) if rewards else 0


async def gas_price_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    chain_id = get_transaction_chain_id(transaction)

    async with web3s_from_chain_id(chain_id) as web3s:
        if chain_id in PRE_EIP_1559_CHAIN_IDS:
            gas_price = max(
                await asyncio.gather(*[web3.eth.gas_price for web3 in web3s])
            )
            transaction["gasPrice"] = int(gas_price * SUGGESTED_GAS_PRICE_MULTIPLIER)
            return transaction

        blocks = await asyncio.gather(*[web3.eth.get_block("latest") for web3 in web3s])
        priority_fees = await asyncio.gather(*[_priority_fee(web3) for web3 in web3s])

    base_fee = max(int(block["baseFeePerGas"]) for block in blocks)
    priority_fee = max(priority_fees)
    transaction["maxFeePerGas"] = int(
        base_fee * MAX_BASE_FEE_GROWTH_MULTIPLIER
        + priority_fee * SUGGESTED_PRIORITY_FEE_MULTIPLIER
    )
    transaction["maxPriorityFeePerGas"] = int(
        priority_fee * SUGGESTED_PRIORITY_FEE_MULTIPLIER
    )
    return transaction


async def gas_limit_transaction(transaction: dict) -> dict:
    transaction = transaction.copy()
    transaction.pop("gas", None)

    async def _estimate(web3: AsyncWeb3) -> int:
        try:
            return await web3.eth.estimate_gas(transaction, block_identifier="latest")
        except Exception as exc:
            logger.info(f"Gas estimation failed on {web3.provider.endpoint_uri}: {exc}")
            return 0

    async with web3s_from_chain_id(get_transaction_chain_id(transaction)) as web3s:
        estimates = await asyncio.gather(*[_estimate(web3) for web3 in web3s])

    gas_limit = max(estimates)
    if gas_limit == 0:
        logger.error("Gas estimation failed on all RPCs")
        raise TransactionReverted(
            None, message="Gas estimation failed: transaction would revert"
        )
    transaction["gas"] = int(math.ceil(gas_limit * GAS_BUFFER_MULTIPLIER))
    return transaction


async def broadcast_transaction(chain_id: int, signed_transaction: bytes) -> str:
    async with web3_from_chain_id(chain_id) as web3:
        tx_hash = await web3.eth.send_raw_transaction(signed_transaction)
    return _normalize_hash(tx_hash)


async def wait_for_transaction_receipt(
    chain_id: int,
    txn_hash: str,
    poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
    timeout: int = DEFAULT_RECEIPT_TIMEOUT,
) -> dict:
    """Block until ``txn_hash`` is mined. Raises ``TransactionReverted`` on status 0."""
    txn_hash = _normalize_hash(txn_hash)
    async with web3_from_chain_id(chain_id) as web3:
        receipt = await web3.eth.wait_for_transaction_receipt(
            txn_hash, poll_latency=poll_interval, timeout=timeout
        )
    receipt = dict(receipt)
    if int(receipt.get("status", 1)) == 0:
        raise TransactionReverted(
            txn_hash,
            receipt,
            message=f"Transaction reverted (status=0): {txn_hash}",
        )
    return receipt


async def send_transaction(transaction: dict, sign_callback: SignCallback) -> str:
    """Fill gas, nonce and fees, sign via ``sign_callback`` and broadcast."""
    if sign_callback is None:
        raise ValueError("sign_callback must be provided to send transaction")

    chain_id = get_transaction_chain_id(transaction)
    transaction = await gas_limit_transaction(transaction)
    transaction = await nonce_transaction(transaction)
    transaction = await gas_price_transaction(transaction)
    signed_transaction = await sign_callback(transaction)
    txn_hash = await broadcast_transaction(chain_id, signed_transaction)
    logger.info(f"Transaction broadcasted: {txn_hash}")
    return txn_hash


def build_transaction(
    *,
    to: str,
    data: str,
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    return {
        "chainId": int(chain_id),
        "from": to_checksum_address(from_address),
        "to": to_checksum_address(to),
        "data": data,
        "value": int(value),
    }


def encode_function_data(
    abi: list[dict[str, Any]], fn_name: str, args: list[Any], target: str | None = None
) -> str:
    # calldata only, so a provider-less client is enough
    contract = _OFFLINE_WEB3.eth.contract(
        address=to_checksum_address(target) if target else None, abi=abi
    )
    try:
        return contract.encode_abi(fn_name, args)
    except (ValueError, TypeError, AttributeError, Web3Exception) as exc:
        raise ValueError(f"Failed to encode {fn_name}: {exc}") from exc


def encode_call(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    return build_transaction(
        to=target,
        data=encode_function_data(abi, fn_name, args, target),
        from_address=from_address,
        chain_id=chain_id,
        value=value,
    )
