from __future__ import annotations

from typing import Any, Literal

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address
from loguru import logger

from liquidity_deposit.core.config import get_chain_id, load_wallet_private_key
from liquidity_deposit.core.constants.erc20_abi import ERC20_ABI
from liquidity_deposit.core.errors import TransactionReverted
from liquidity_deposit.core.utils.transaction import (
    build_transaction,
    encode_call,
    send_transaction,
    wait_for_transaction_receipt,
)

ReceiptStatus = Literal["confirmed", "reverted"]

_DOMAIN_FIELD_TYPES = {
    "name": "string",
    "version": "string",
    "chainId": "uint256",
    "verifyingContract": "address",
    "salt": "bytes32",
}


def _coerce_field(value: Any, typ: str, types: dict[str, list[dict[str, str]]]) -> Any:
    if typ.endswith("]"):
        inner = typ[: typ.rindex("[")]
        return [_coerce_field(v, inner, types) for v in value]
    if typ in types:
        return _coerce_struct(value, typ, types)
    if (typ.startswith("uint") or typ.startswith("int")) and isinstance(value, str):
        text = value.strip()
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    return value


def _coerce_struct(
    data: dict[str, Any], struct: str, types: dict[str, list[dict[str, str]]]
) -> dict[str, Any]:
    out = dict(data)
    for field in types.get(struct, []):
        if field["name"] in out:
            out[field["name"]] = _coerce_field(out[field["name"]], field["type"], types)
    return out


def build_typed_data(
    domain: dict[str, Any],
    types: dict[str, list[dict[str, str]]],
    primary_type: str,
    message: dict[str, Any],
) -> dict[str, Any]:
    """Assemble an EIP-712 ``full_message``, adding ``EIP712Domain`` if absent.

    Numeric fields that arrive as JSON strings are converted to ints.
    """
    all_types = dict(types)
    if "EIP712Domain" not in all_types:
        all_types["EIP712Domain"] = [
            {"name": key, "type": typ}
            for key, typ in _DOMAIN_FIELD_TYPES.items()
            if key in domain
        ]
    return {
        "types": all_types,
        "primaryType": primary_type,
        "domain": _coerce_struct(domain, "EIP712Domain", all_types),
        "message": _coerce_struct(message, primary_type, all_types),
    }


class LocalAccountWallet:
    """Wallet signer/sender backed by a local private key and JSON-RPC."""

    def __init__(self, private_key: str, chain_id: int):
        self._account = Account.from_key(private_key)
        self.address = self._account.address
        self.chain_id = int(chain_id)
        self.logger = logger.bind(wallet=self.address)

    @classmethod
    def from_config(cls) -> LocalAccountWallet:
        private_key = load_wallet_private_key()
        if not private_key:
            raise ValueError("No wallet private key configured")
        return cls(private_key, get_chain_id())

    async def _sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction)
        return signed.raw_transaction

    async def approve(self, token: str, spender: str, amount: int) -> str:
        transaction = encode_call(
            target=token,
            abi=ERC20_ABI,
            fn_name="approve",
            args=[to_checksum_address(spender), int(amount)],
            from_address=self.address,
            chain_id=self.chain_id,
        )
        self.logger.info(f"Approving {spender} for {amount} of {token}")
        return await send_transaction(transaction, self._sign_transaction)

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        full_message = build_typed_data(domain, types, primary_type, message)
        signable = encode_typed_data(full_message=full_message)
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()

    async def send_raw_transaction(self, to: str, data: str, value: int = 0) -> str:
        transaction = build_transaction(
            to=to,
            data=data,
            from_address=self.address,
            chain_id=self.chain_id,
            value=value,
        )
        return await send_transaction(transaction, self._sign_transaction)

    async def wait_for_receipt(self, tx_hash: str) -> ReceiptStatus:
        try:
            await wait_for_transaction_receipt(self.chain_id, tx_hash)
        except TransactionReverted:
            self.logger.warning(f"Transaction {tx_hash} reverted")
            return "reverted"
        return "confirmed"
