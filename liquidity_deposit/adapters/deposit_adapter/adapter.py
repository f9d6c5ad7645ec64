from __future__ import annotations

from typing import Any

from liquidity_deposit.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from liquidity_deposit.core.adapters.decorators import status_tuple
from liquidity_deposit.core.clients.LiquidityClient import LiquidityClient
from liquidity_deposit.core.clients.protocols import WalletSignerProtocol
from liquidity_deposit.core.config import get_chain_id, get_tick_spacing
from liquidity_deposit.core.errors import InvalidTransition
from liquidity_deposit.core.models import DepositIntent, PoolState, TickRange, TokenRef
from liquidity_deposit.core.utils.ranges import parse_preset, resolve_preset_range
from liquidity_deposit.core.utils.tick_price import price_range_for_ticks
from liquidity_deposit.orchestrator.calculation import PairedAmountCalculator
from liquidity_deposit.orchestrator.machine import DepositStateMachine
from liquidity_deposit.orchestrator.state import (
    Approving,
    Done,
    Input,
    Minting,
    Notification,
    PermitSigning,
)

DEFAULT_TICK_SPACING = 60
MAX_DEPOSIT_STEPS = 8


class DepositAdapter(BaseAdapter):
    """Headless driver for a full deposit: range, paired amount, approvals, mint."""

    adapter_type = "LIQUIDITY_DEPOSIT"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        liquidity_client: LiquidityClient | None = None,
        wallet: WalletSignerProtocol | None = None,
    ):
        super().__init__("deposit_adapter", config)
        self.chain_id = int(self.config.get("chain_id") or get_chain_id())
        self.tick_spacing = int(
            self.config.get("tick_spacing")
            or get_tick_spacing(self.config.get("pool_id"))
            or DEFAULT_TICK_SPACING
        )
        self.wallet = wallet
        self.liquidity_client = liquidity_client or LiquidityClient(
            chain_id=self.chain_id,
            user_address=wallet.address if wallet is not None else None,
        )
        self.notifications: list[Notification] = []

    @status_tuple
    async def get_pool_state(self, token0: TokenRef, token1: TokenRef) -> PoolState:
        return await self.liquidity_client.get_pool_state(
            token0, token1, pool_id=self.config.get("pool_id")
        )

    @status_tuple
    async def resolve_range(
        self,
        token0: TokenRef,
        token1: TokenRef,
        preset: str | float,
        *,
        center_tick: int | None = None,
    ) -> TickRange:
        if center_tick is None and parse_preset(preset) is not None:
            state = await self.liquidity_client.get_pool_state(
                token0, token1, pool_id=self.config.get("pool_id")
            )
            center_tick = state.tick
        return resolve_preset_range(preset, self.tick_spacing, center_tick=center_tick)

    @status_tuple
    async def price_bounds(
        self, intent: DepositIntent, *, quote: TokenRef | None = None
    ) -> tuple[float, float]:
        """Prices of ``intent``'s range ends, in ``quote`` per base token."""
        quote = quote or intent.token1
        base = intent.token0 if quote == intent.token1 else intent.token1
        return price_range_for_ticks(intent.tick_range, quote, base, intent.ordering)

    @status_tuple
    async def quote(self, intent: DepositIntent) -> DepositIntent:
        calculator = PairedAmountCalculator(self.liquidity_client, quiet_period=0)
        calculator.request(intent)
        result = await calculator.flush()
        if calculator.last_error is not None:
            raise calculator.last_error
        return result

    @require_wallet
    @status_tuple
    async def deposit(self, intent: DepositIntent) -> str:
        machine = DepositStateMachine(
            self.liquidity_client,
            self.wallet,
            chain_id=self.chain_id,
            tick_spacing=self.tick_spacing,
            on_notify=self.notifications.append,
        )
        state = await machine.commit(intent)
        for _ in range(MAX_DEPOSIT_STEPS):
            if machine.last_error is not None:
                raise machine.last_error
            if isinstance(state, Done):
                return state.tx_hash
            if isinstance(state, Approving):
                self.logger.info(f"Approving {state.token.symbol} for Permit2")
                state = await machine.confirm_approval()
            elif isinstance(state, PermitSigning):
                symbols = ", ".join(t.symbol for t in state.tokens)
                self.logger.info(f"Signing Permit2 allowance for {symbols}")
                state = await machine.sign_and_submit()
            elif isinstance(state, Minting):
                state = await machine.execute()
            elif isinstance(state, Input):
                raise InvalidTransition("Deposit returned to input without an error")
        if machine.last_error is not None:
            raise machine.last_error
        if isinstance(state, Done):
            return state.tx_hash
        raise InvalidTransition(f"Deposit did not finish after {MAX_DEPOSIT_STEPS} steps")

    async def close(self) -> None:
        await self.liquidity_client.close()
