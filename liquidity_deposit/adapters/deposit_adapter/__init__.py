from liquidity_deposit.adapters.deposit_adapter.adapter import DepositAdapter

__all__ = ["DepositAdapter"]
