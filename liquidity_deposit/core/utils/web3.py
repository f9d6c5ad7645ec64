from contextlib import asynccontextmanager

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from liquidity_deposit.core.config import get_rpc_urls
from liquidity_deposit.core.constants.base import DEFAULT_HTTP_TIMEOUT
from liquidity_deposit.core.constants.chains import (
    POA_MIDDLEWARE_CHAIN_IDS,
    PUBLIC_RPC_URLS,
)


def rpc_urls_for_chain(chain_id: int) -> list[str]:
    """Configured RPC endpoints for ``chain_id``, else the public fallback."""
    configured = get_rpc_urls()
    urls = configured.get(str(chain_id), configured.get(chain_id))
    if urls is None:
        urls = PUBLIC_RPC_URLS.get(int(chain_id))
        if urls:
            logger.debug(f"No rpc_urls configured for chain {chain_id}, using public RPC")
    if not urls:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    if isinstance(urls, str):
        urls = [urls]
    return list(dict.fromkeys(urls))


def _connect(rpc: str, chain_id: int) -> AsyncWeb3:
    provider = AsyncHTTPProvider(rpc, request_kwargs={"timeout": DEFAULT_HTTP_TIMEOUT})
    web3 = AsyncWeb3(provider)
    if chain_id in POA_MIDDLEWARE_CHAIN_IDS:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


def get_transaction_chain_id(transaction: dict) -> int:
    if "chainId" not in transaction:
        raise ValueError("Transaction does not contain chainId")
    return int(transaction["chainId"])


async def _disconnect(*web3s: AsyncWeb3) -> None:
    for web3 in web3s:
        await web3.provider.disconnect()


@asynccontextmanager
async def web3s_from_chain_id(chain_id: int):
    """One client per configured RPC, for fan-out reads and broadcasts."""
    web3s = [_connect(rpc, chain_id) for rpc in rpc_urls_for_chain(chain_id)]
    try:
        yield web3s
    finally:
        await _disconnect(*web3s)


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    web3 = _connect(rpc_urls_for_chain(chain_id)[0], chain_id)
    try:
        yield web3
    finally:
        await _disconnect(web3)
