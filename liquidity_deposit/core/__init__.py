from liquidity_deposit.core.adapters.BaseAdapter import BaseAdapter
from liquidity_deposit.core.errors import DepositError

__all__ = [
    "BaseAdapter",
    "DepositError",
]
