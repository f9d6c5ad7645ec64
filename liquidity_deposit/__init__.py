__version__ = "0.1.0"

from liquidity_deposit.core import BaseAdapter, DepositError
from liquidity_deposit.orchestrator import (
    DepositStateMachine,
    PairedAmountCalculator,
)

__all__ = [
    "__version__",
    "BaseAdapter",
    "DepositError",
    "DepositStateMachine",
    "PairedAmountCalculator",
]
