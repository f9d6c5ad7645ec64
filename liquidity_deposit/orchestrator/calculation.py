from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from liquidity_deposit.core.clients.protocols import AmountCalculatorProtocol
from liquidity_deposit.core.config import get_debounce_seconds
from liquidity_deposit.core.errors import CalculationFailed, DepositError
from liquidity_deposit.core.models import AmountQuote, DepositIntent, parse_amount
from liquidity_deposit.core.utils.units import format_token_amount, to_erc20_raw


class PairedAmountCalculator:
    """Debounced derivation of the paired token amount.

    Each ``request`` supersedes the previous one. A reply is applied only if
    the intent it was computed for is still the current one, so a slow answer
    for an old amount or range never overwrites a newer edit.
    """

    def __init__(
        self,
        calculator: AmountCalculatorProtocol,
        *,
        quiet_period: float | None = None,
        on_result: Callable[[DepositIntent, AmountQuote | None], Any] | None = None,
        on_error: Callable[[DepositError], Any] | None = None,
    ):
        self.calculator = calculator
        self.quiet_period = (
            get_debounce_seconds() if quiet_period is None else float(quiet_period)
        )
        self.on_result = on_result
        self.on_error = on_error

        self.intent: DepositIntent | None = None
        self.quote: AmountQuote | None = None
        self.last_error: DepositError | None = None
        self._current: DepositIntent | None = None
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self.logger = logger.bind(component=self.__class__.__name__)

    @property
    def is_calculating(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self, intent: DepositIntent) -> asyncio.Task:
        """Schedule a lookup for ``intent``.

        Raises ``InvalidRange`` before scheduling anything when the range is
        outside the tick bounds; pending replies are still superseded.
        """
        # earlier requests keep running; their results are dropped on arrival
        self._generation += 1
        self._current = intent
        intent.tick_range.validate_for_pool(0)
        task = asyncio.create_task(self._debounced(intent, self._generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._task = task
        return task

    def detach(self) -> None:
        """Ignore every outstanding request without aborting it."""
        self._generation += 1
        self._current = None

    async def flush(self) -> DepositIntent | None:
        if self._task is not None:
            await self._task
        return self.intent

    def _apply(self, intent: DepositIntent, quote: AmountQuote | None) -> None:
        self.intent = intent
        self.quote = quote
        if self.on_result is not None:
            self.on_result(intent, quote)

    async def _debounced(self, intent: DepositIntent, generation: int) -> None:
        await asyncio.sleep(self.quiet_period)
        if generation != self._generation:
            return

        amount = parse_amount(intent.input_amount)
        if not amount or amount <= 0:
            self.last_error = None
            self._apply(intent.with_derived_amount(""), None)
            return

        input_token = intent.input_token
        try:
            quote = await self.calculator.calculate(
                intent.token0,
                intent.token1,
                to_erc20_raw(intent.input_amount, input_token.decimals),
                input_token.symbol,
                intent.tick_range.lower,
                intent.tick_range.upper,
            )
        except Exception as exc:
            if intent != self._current:
                return
            error = exc if isinstance(exc, DepositError) else CalculationFailed(str(exc))
            self.logger.warning(f"Paired amount calculation failed: {error}")
            self.last_error = error
            self._apply(intent.with_derived_amount(""), None)
            if self.on_error is not None:
                self.on_error(error)
            return

        if intent != self._current:
            self.logger.debug("Discarding calculation for a superseded intent")
            return

        derived = intent.derived_token
        paired = format_token_amount(quote.paired_amount, derived.decimals)
        self.last_error = None
        self._apply(intent.with_derived_amount(paired), quote)
