"""Permit2 helpers: read tokens out of a permit message and encode ``permit``."""

from __future__ import annotations

from typing import Any

from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, to_bytes, to_checksum_address

from liquidity_deposit.core.models import RawTransaction

_DETAILS = "(address,uint160,uint48,uint48)"
PERMIT_SINGLE_ARG = f"({_DETAILS},address,uint256)"
PERMIT_BATCH_ARG = f"({_DETAILS}[],address,uint256)"
PERMIT_SINGLE_SIGNATURE = f"permit(address,{PERMIT_SINGLE_ARG},bytes)"
PERMIT_BATCH_SIGNATURE = f"permit(address,{PERMIT_BATCH_ARG},bytes)"


def is_batch_permit(message: dict[str, Any]) -> bool:
    return isinstance(message.get("details"), list)


def permit_token_addresses(message: dict[str, Any]) -> list[str]:
    """Checksummed token addresses covered by a PermitSingle or PermitBatch."""
    details = message.get("details")
    if details is None:
        raise ValueError("Permit message has no details")
    entries = details if isinstance(details, list) else [details]
    addresses: list[str] = []
    for entry in entries:
        address = to_checksum_address(entry["token"])
        if address not in addresses:
            addresses.append(address)
    return addresses


def _details_tuple(entry: dict[str, Any]) -> tuple[str, int, int, int]:
    return (
        to_checksum_address(entry["token"]),
        int(entry["amount"]),
        int(entry["expiration"]),
        int(entry["nonce"]),
    )


def encode_permit_calldata(owner: str, message: dict[str, Any], signature: str) -> str:
    spender = to_checksum_address(message["spender"])
    sig_deadline = int(message["sigDeadline"])
    sig_bytes = to_bytes(hexstr=signature)

    if is_batch_permit(message):
        details = [_details_tuple(d) for d in message["details"]]
        fn_signature, permit_arg = PERMIT_BATCH_SIGNATURE, PERMIT_BATCH_ARG
    else:
        details = _details_tuple(message["details"])
        fn_signature, permit_arg = PERMIT_SINGLE_SIGNATURE, PERMIT_SINGLE_ARG

    encoded = abi_encode(
        ["address", permit_arg, "bytes"],
        [to_checksum_address(owner), (details, spender, sig_deadline), sig_bytes],
    )
    selector = function_signature_to_4byte_selector(fn_signature)
    return "0x" + (selector + encoded).hex()


def build_permit_transaction(
    permit2_address: str, owner: str, message: dict[str, Any], signature: str
) -> RawTransaction:
    return RawTransaction(
        to=to_checksum_address(permit2_address),
        data=encode_permit_calldata(owner, message, signature),
        value=0,
    )
