"""Error taxonomy for the deposit flow.

Local validation errors (``InvalidRange``, ``InvalidPrice``, ``InvalidIntent``)
are raised before any collaborator is contacted. Everything that can happen
after a suspension point is classified into one of the remaining types so the
state machine can decide whether to stay put, fall back to input, or retry.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    USER_REJECTION = "user_rejection"
    NETWORK = "network"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SLIPPAGE = "slippage"
    CONTRACT = "contract"
    UNKNOWN = "unknown"


class DepositError(Exception):
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, *, category: ErrorCategory | None = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category


class InvalidRange(DepositError, ValueError):
    pass


class RangeTooNarrow(InvalidRange):
    def __init__(self, lower: int, upper: int, spacing: int):
        self.lower = lower
        self.upper = upper
        self.spacing = spacing
        super().__init__(
            f"Range [{lower}, {upper}] is narrower than one tick spacing ({spacing})"
        )


class InvalidPrice(DepositError, ValueError):
    pass


class InvalidIntent(DepositError, ValueError):
    pass


class CalculationFailed(DepositError):
    pass


class PreparationFailed(DepositError):
    pass


class WalletRejected(DepositError):
    category = ErrorCategory.USER_REJECTION


class TransactionReverted(DepositError):
    category = ErrorCategory.CONTRACT

    def __init__(
        self,
        tx_hash: str | None,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.tx_hash = tx_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {tx_hash}")


class NetworkMismatch(DepositError):
    category = ErrorCategory.NETWORK

    def __init__(self, expected: int, actual: int | None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Wallet is connected to chain {actual}, switch to chain {expected}"
        )


class UnexpectedPermitToken(DepositError):
    def __init__(self, addresses: list[str]):
        self.addresses = addresses
        super().__init__(
            "Permit batch references tokens outside the deposit: "
            + ", ".join(addresses)
        )


class InvalidTransition(DepositError, RuntimeError):
    pass


_REJECTION_MARKERS = (
    "user rejected",
    "user denied",
    "user cancelled",
    "user canceled",
    "rejected by user",
    "denied by user",
)
_NETWORK_MARKERS = (
    "network",
    "rpc",
    "timeout",
    "fetch",
    "connection",
    "socket",
    "enotfound",
    "econnrefused",
)
_INSUFFICIENT_FUNDS_MARKERS = (
    "insufficient funds",
    "insufficient balance",
    "exceeds balance",
    "not enough",
)
_SLIPPAGE_MARKERS = (
    "slippage",
    "price changed",
    "price moved",
    "too little received",
    "too much requested",
    "price impact",
)
_REVERT_MARKERS = ("revert", "execution reverted", "call exception")
_CHAIN_MISMATCH_MARKERS = (
    "chain mismatch",
    "wrong network",
    "does not match the target chain",
    "unrecognized chain",
)

# EIP-1193 provider error code for a declined request
USER_REJECTED_REQUEST_CODE = 4001


def extract_error_message(error: BaseException | str | None) -> str:
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error
    message = str(error).strip()
    if not message and error.__cause__ is not None:
        return extract_error_message(error.__cause__)
    return message or error.__class__.__name__


def _error_code(error: BaseException) -> int | None:
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def is_user_rejection(error: BaseException) -> bool:
    if _error_code(error) == USER_REJECTED_REQUEST_CODE:
        return True
    message = extract_error_message(error).lower()
    return any(marker in message for marker in _REJECTION_MARKERS)


def categorize_error(error: BaseException) -> ErrorCategory:
    if isinstance(error, DepositError):
        return error.category
    if is_user_rejection(error):
        return ErrorCategory.USER_REJECTION

    message = extract_error_message(error).lower()
    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK
    if any(marker in message for marker in _INSUFFICIENT_FUNDS_MARKERS):
        return ErrorCategory.INSUFFICIENT_FUNDS
    if any(marker in message for marker in _SLIPPAGE_MARKERS):
        return ErrorCategory.SLIPPAGE
    if any(marker in message for marker in _REVERT_MARKERS):
        return ErrorCategory.CONTRACT
    return ErrorCategory.UNKNOWN


def classify_wallet_error(
    error: BaseException,
    *,
    tx_hash: str | None = None,
    expected_chain_id: int | None = None,
) -> DepositError:
    """Map a raw wallet or RPC exception onto the deposit error taxonomy."""
    if isinstance(error, DepositError):
        return error

    message = extract_error_message(error)
    lowered = message.lower()
    if expected_chain_id is not None and any(
        marker in lowered for marker in _CHAIN_MISMATCH_MARKERS
    ):
        return NetworkMismatch(expected_chain_id, None)

    category = categorize_error(error)
    if category == ErrorCategory.USER_REJECTION:
        return WalletRejected(message)
    if category == ErrorCategory.CONTRACT:
        return TransactionReverted(tx_hash, message=message)
    return DepositError(message, category=category)
