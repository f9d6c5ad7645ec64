from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, NoReturn

import click
from loguru import logger

from liquidity_deposit.adapters.deposit_adapter.adapter import DepositAdapter
from liquidity_deposit.core.config import (
    get_chain_id,
    get_tick_spacing,
    get_token_ref,
    load_config,
)
from liquidity_deposit.core.constants.chains import get_explorer_tx_url
from liquidity_deposit.core.errors import DepositError
from liquidity_deposit.core.models import (
    DepositIntent,
    InputSide,
    PoolOrdering,
    TickRange,
    TokenRef,
)
from liquidity_deposit.core.utils.ranges import range_from_prices, resolve_preset_range
from liquidity_deposit.core.utils.tick_price import (
    is_tick_at_limit,
    nearest_usable_tick,
    price_range_for_ticks,
    price_to_tick,
    range_percentages,
    tick_to_price,
)
from liquidity_deposit.core.utils.wallet import LocalAccountWallet

DEFAULT_SPACING = 60


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(message: str) -> NoReturn:
    _echo_json({"ok": False, "error": message})
    sys.exit(1)


def _token(symbol: str) -> TokenRef:
    try:
        return get_token_ref(symbol)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _spacing(value: int | None) -> int:
    return value or get_tick_spacing() or DEFAULT_SPACING


def _pair(base: str, quote: str) -> tuple[TokenRef, TokenRef, PoolOrdering]:
    base_ref, quote_ref = _token(base), _token(quote)
    return base_ref, quote_ref, PoolOrdering.from_tokens(base_ref, quote_ref)


def _range_summary(
    tick_range: TickRange,
    base: TokenRef,
    quote: TokenRef,
    ordering: PoolOrdering,
    spacing: int,
    current_tick: int | None = None,
) -> dict[str, Any]:
    min_price, max_price = price_range_for_ticks(tick_range, quote, base, ordering)
    at_min, _ = is_tick_at_limit(tick_range.lower, spacing)
    _, at_max = is_tick_at_limit(tick_range.upper, spacing)
    summary: dict[str, Any] = {
        "tick_lower": tick_range.lower,
        "tick_upper": tick_range.upper,
        "min_price": min_price,
        "max_price": max_price,
        "price_unit": f"{quote.symbol} per {base.symbol}",
        "lower_at_limit": at_min,
        "upper_at_limit": at_max,
    }
    if current_tick is not None:
        below, above = range_percentages(tick_range, current_tick)
        summary["percent_below"] = below
        summary["percent_above"] = above
    return summary


@click.group(name="liquidity-deposit", help="Concentrated-liquidity deposit tools.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a config JSON (defaults to ./config.json).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def cli(config_path: str | None, log_level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())
    if config_path:
        load_config(config_path, require_exists=True)


@cli.command(name="tick-to-price", help="Price of BASE in QUOTE at a tick.")
@click.argument("tick", type=int)
@click.option("--base", required=True, help="Token symbol being priced.")
@click.option("--quote", required=True, help="Token symbol the price is expressed in.")
def tick_to_price_cmd(tick: int, base: str, quote: str) -> None:
    base_ref, quote_ref, ordering = _pair(base, quote)
    price = tick_to_price(tick, quote_ref, base_ref, ordering)
    _echo_json({"ok": True, "result": {"tick": tick, "price": price}})


@cli.command(name="price-to-tick", help="Tick for a price of BASE in QUOTE.")
@click.argument("price", type=str)
@click.option("--base", required=True)
@click.option("--quote", required=True)
@click.option("--spacing", type=int, default=None, help="Pool tick spacing.")
def price_to_tick_cmd(price: str, base: str, quote: str, spacing: int | None) -> None:
    base_ref, quote_ref, ordering = _pair(base, quote)
    try:
        tick = price_to_tick(price, quote_ref, base_ref, ordering)
    except DepositError as exc:
        _fail(exc.message)
    _echo_json(
        {
            "ok": True,
            "result": {
                "tick": tick,
                "usable_tick": nearest_usable_tick(tick, _spacing(spacing)),
            },
        }
    )


@cli.command(name="preset", help="Resolve a range preset around the current tick.")
@click.argument("preset")
@click.option("--base", required=True)
@click.option("--quote", required=True)
@click.option("--center-tick", type=int, default=None)
@click.option("--center-price", type=str, default=None)
@click.option("--spacing", type=int, default=None)
def preset_cmd(
    preset: str,
    base: str,
    quote: str,
    center_tick: int | None,
    center_price: str | None,
    spacing: int | None,
) -> None:
    base_ref, quote_ref, ordering = _pair(base, quote)
    tick_spacing = _spacing(spacing)
    try:
        tick_range = resolve_preset_range(
            preset,
            tick_spacing,
            center_tick=center_tick,
            center_price=center_price or None,
            quote=quote_ref,
            base=base_ref,
            ordering=ordering,
        )
    except DepositError as exc:
        _fail(exc.message)
    summary = _range_summary(
        tick_range, base_ref, quote_ref, ordering, tick_spacing, center_tick
    )
    _echo_json({"ok": True, "result": summary})


@cli.command(name="range-info", help="Describe a tick range, or one built from prices.")
@click.option("--base", required=True)
@click.option("--quote", required=True)
@click.option("--lower", type=int, default=None, help="Lower tick.")
@click.option("--upper", type=int, default=None, help="Upper tick.")
@click.option("--min-price", type=str, default=None)
@click.option("--max-price", type=str, default=None)
@click.option("--current-tick", type=int, default=None)
@click.option("--spacing", type=int, default=None)
def range_info_cmd(
    base: str,
    quote: str,
    lower: int | None,
    upper: int | None,
    min_price: str | None,
    max_price: str | None,
    current_tick: int | None,
    spacing: int | None,
) -> None:
    base_ref, quote_ref, ordering = _pair(base, quote)
    tick_spacing = _spacing(spacing)
    try:
        if min_price is not None and max_price is not None:
            tick_range = range_from_prices(
                min_price, max_price, quote_ref, base_ref, ordering, tick_spacing
            )
        elif lower is not None and upper is not None:
            tick_range = TickRange(lower, upper).validate_for_pool(tick_spacing)
        else:
            raise click.UsageError("Pass --lower/--upper or --min-price/--max-price")
    except DepositError as exc:
        _fail(exc.message)
    summary = _range_summary(
        tick_range, base_ref, quote_ref, ordering, tick_spacing, current_tick
    )
    _echo_json({"ok": True, "result": summary})


def _intent_from_options(
    token0: str,
    token1: str,
    amount: str,
    input_side: str,
    lower: int,
    upper: int,
) -> DepositIntent:
    side = InputSide(input_side)
    intent = DepositIntent(_token(token0), _token(token1), TickRange(lower, upper))
    if side == InputSide.TOKEN0:
        return intent.with_amounts(token0_amount=amount, active_input_side=side)
    return intent.with_amounts(token1_amount=amount, active_input_side=side)


async def _run_with_adapter(adapter: DepositAdapter, method: str, *args: Any) -> Any:
    try:
        return await getattr(adapter, method)(*args)
    finally:
        await adapter.close()


_intent_options = [
    click.option("--token0", required=True),
    click.option("--token1", required=True),
    click.option("--amount", required=True, help="Amount of the input token."),
    click.option(
        "--input-side",
        type=click.Choice([s.value for s in InputSide]),
        default=InputSide.TOKEN0.value,
        show_default=True,
    ),
    click.option("--lower", type=int, required=True),
    click.option("--upper", type=int, required=True),
]


def _with_intent_options(fn):
    for option in reversed(_intent_options):
        fn = option(fn)
    return fn


@cli.command(name="quote", help="Compute the paired amount for a deposit.")
@_with_intent_options
def quote_cmd(
    token0: str, token1: str, amount: str, input_side: str, lower: int, upper: int
) -> None:
    try:
        intent = _intent_from_options(token0, token1, amount, input_side, lower, upper)
    except DepositError as exc:
        _fail(exc.message)
    adapter = DepositAdapter({"chain_id": get_chain_id()})
    ok, result = asyncio.run(_run_with_adapter(adapter, "quote", intent))
    if not ok:
        _fail(result)
    _echo_json(
        {
            "ok": True,
            "result": {
                result.token0.symbol: result.token0_amount,
                result.token1.symbol: result.token1_amount,
            },
        }
    )


@cli.command(name="deposit", help="Approve, permit and mint a deposit with the configured wallet.")
@_with_intent_options
@click.option("--paired-amount", default=None, help="Skip the quote and use this paired amount.")
def deposit_cmd(
    token0: str,
    token1: str,
    amount: str,
    input_side: str,
    lower: int,
    upper: int,
    paired_amount: str | None,
) -> None:
    try:
        intent = _intent_from_options(token0, token1, amount, input_side, lower, upper)
        wallet = LocalAccountWallet.from_config()
    except (DepositError, ValueError) as exc:
        _fail(str(exc))

    async def _run() -> tuple[bool, Any]:
        adapter = DepositAdapter({"chain_id": wallet.chain_id}, wallet=wallet)
        try:
            deposit_intent = intent
            if paired_amount is not None:
                deposit_intent = intent.with_derived_amount(paired_amount)
            else:
                ok, quoted = await adapter.quote(intent)
                if not ok:
                    return False, quoted
                deposit_intent = quoted
            return await adapter.deposit(deposit_intent)
        finally:
            await adapter.close()

    ok, result = asyncio.run(_run())
    if not ok:
        _fail(result)
    _echo_json(
        {
            "ok": True,
            "result": {
                "tx_hash": result,
                "explorer_url": get_explorer_tx_url(wallet.chain_id, result),
            },
        }
    )


if __name__ == "__main__":
    cli()
