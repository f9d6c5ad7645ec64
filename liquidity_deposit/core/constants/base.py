DEFAULT_HTTP_TIMEOUT = 30.0

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAX_UINT48 = 2**48 - 1
MAX_UINT160 = 2**160 - 1
MAX_UINT256 = 2**256 - 1

# Pool-wide tick bounds for concentrated-liquidity pools
MIN_TICK = -887272
MAX_TICK = 887272

DEFAULT_DEBOUNCE_SECONDS = 0.35
DEFAULT_RECEIPT_TIMEOUT = 300
DEFAULT_RECEIPT_POLL_INTERVAL = 0.5

GAS_BUFFER_MULTIPLIER = 1.3
SUGGESTED_GAS_PRICE_MULTIPLIER = 1.5
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2
