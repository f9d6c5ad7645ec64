CHAIN_ID_ETHEREUM = 1
CHAIN_ID_ARBITRUM = 42161
CHAIN_ID_BASE = 8453
CHAIN_ID_BASE_SEPOLIA = 84532

SUPPORTED_CHAINS = (
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_BASE,
    CHAIN_ID_BASE_SEPOLIA,
)

# Chains that only accept legacy gasPrice transactions
PRE_EIP_1559_CHAIN_IDS: set[int] = set()

# Chains whose blocks carry oversized extraData
POA_MIDDLEWARE_CHAIN_IDS = {CHAIN_ID_BASE, CHAIN_ID_BASE_SEPOLIA}

CHAIN_EXPLORER_URLS = {
    CHAIN_ID_ETHEREUM: "https://etherscan.io/",
    CHAIN_ID_ARBITRUM: "https://arbiscan.io/",
    CHAIN_ID_BASE: "https://basescan.org/",
    CHAIN_ID_BASE_SEPOLIA: "https://sepolia.basescan.org/",
}

# Fallback endpoints when the config has no rpc_urls entry for a chain
PUBLIC_RPC_URLS: dict[int, list[str]] = {
    CHAIN_ID_ETHEREUM: ["https://eth.llamarpc.com"],
    CHAIN_ID_ARBITRUM: ["https://arb1.arbitrum.io/rpc"],
    CHAIN_ID_BASE: ["https://mainnet.base.org"],
    CHAIN_ID_BASE_SEPOLIA: ["https://sepolia.base.org"],
}

# Permit2 is deployed at the same address on every supported chain
PERMIT2_ADDRESS = "0x000000000022D473030F116dDEE9F6B43aC78BA3"


def get_explorer_tx_url(chain_id: int, tx_hash: str) -> str | None:
    base = CHAIN_EXPLORER_URLS.get(int(chain_id))
    if not base:
        return None
    return f"{base}tx/{tx_hash}"
