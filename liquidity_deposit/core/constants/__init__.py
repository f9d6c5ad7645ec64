from liquidity_deposit.core.constants.base import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_HTTP_TIMEOUT,
    MAX_TICK,
    MAX_UINT256,
    MIN_TICK,
    ZERO_ADDRESS,
)
from liquidity_deposit.core.constants.chains import (
    CHAIN_ID_BASE,
    CHAIN_ID_BASE_SEPOLIA,
    PERMIT2_ADDRESS,
    SUPPORTED_CHAINS,
)

__all__ = [
    "CHAIN_ID_BASE",
    "CHAIN_ID_BASE_SEPOLIA",
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_HTTP_TIMEOUT",
    "MAX_TICK",
    "MAX_UINT256",
    "MIN_TICK",
    "PERMIT2_ADDRESS",
    "SUPPORTED_CHAINS",
    "ZERO_ADDRESS",
]
