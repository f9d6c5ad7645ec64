from liquidity_deposit.core.clients.LiquidityClient import LiquidityClient
from liquidity_deposit.core.clients.protocols import (
    AmountCalculatorProtocol,
    PoolStateReaderProtocol,
    TransactionPreparerProtocol,
    WalletSignerProtocol,
)

__all__ = [
    "AmountCalculatorProtocol",
    "LiquidityClient",
    "PoolStateReaderProtocol",
    "TransactionPreparerProtocol",
    "WalletSignerProtocol",
]
