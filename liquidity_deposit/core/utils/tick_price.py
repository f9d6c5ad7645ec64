"""Tick/price conversions for concentrated-liquidity pools.

A tick ``t`` corresponds to a raw price of ``1.0001**t`` canonical1 units per
canonical0 unit. Every function here takes the quote/base pair the caller
wants to display together with the pool's ``PoolOrdering``, so the same
call works whichever token the user put first.
"""

from __future__ import annotations

import math
from decimal import Decimal
from enum import StrEnum

from liquidity_deposit.core.constants.base import MAX_TICK, MIN_TICK
from liquidity_deposit.core.errors import InvalidPrice
from liquidity_deposit.core.models import PoolOrdering, TickRange, TokenRef

TICK_BASE = 1.0001
LN_TICK_BASE = math.log(TICK_BASE)
LN_10 = math.log(10)
Q96 = 1 << 96


class RoundMode(StrEnum):
    UP = "up"
    DOWN = "down"


def _direction(quote: TokenRef, base: TokenRef, ordering: PoolOrdering) -> int:
    if not (ordering.contains(quote) and ordering.contains(base)):
        raise ValueError(
            f"{quote.symbol}/{base.symbol} does not match pool "
            f"{ordering.canonical0.symbol}/{ordering.canonical1.symbol}"
        )
    if quote.matches(base.address):
        raise ValueError("Quote and base token must differ")
    return 1 if ordering.is_canonical0(base) else -1


def tick_to_price(
    tick: int | float,
    quote: TokenRef,
    base: TokenRef,
    ordering: PoolOrdering,
    *,
    min_tick: int = MIN_TICK,
    max_tick: int = MAX_TICK,
) -> float:
    """Price of one ``base`` token expressed in ``quote`` tokens at ``tick``.

    Ticks at or past the pool bounds saturate: the side where the price is
    unbounded returns ``inf`` and the other side returns ``0.0``.
    """
    sign = _direction(quote, base, ordering)
    if tick >= max_tick:
        return math.inf if sign > 0 else 0.0
    if tick <= min_tick:
        return 0.0 if sign > 0 else math.inf

    exponent = sign * tick * LN_TICK_BASE + (base.decimals - quote.decimals) * LN_10
    try:
        return math.exp(exponent)
    except OverflowError:
        return math.inf


# Typed markers the range inputs use for an unbounded end
INFINITY_MARKERS = frozenset({"∞", "infinite"})


def _coerce_price(price: object) -> float:
    if isinstance(price, bool):
        raise InvalidPrice(f"Invalid price: {price!r}")
    if isinstance(price, (int, float, Decimal)):
        return float(price)
    if isinstance(price, str):
        text = price.strip().replace(",", "")
        if text.lower() in INFINITY_MARKERS:
            return math.inf
        try:
            return float(text)
        except ValueError as exc:
            raise InvalidPrice(f"Invalid price: {price!r}") from exc
    raise InvalidPrice(f"Invalid price: {price!r}")


def price_to_tick(
    price: float | Decimal | str,
    quote: TokenRef,
    base: TokenRef,
    ordering: PoolOrdering,
    *,
    min_tick: int = MIN_TICK,
    max_tick: int = MAX_TICK,
) -> float:
    """Inverse of :func:`tick_to_price`. Returns an unrounded tick."""
    value = _coerce_price(price)
    if math.isnan(value) or value <= 0:
        raise InvalidPrice(f"Price must be positive, got {price!r}")

    sign = _direction(quote, base, ordering)
    if math.isinf(value):
        return float(max_tick if sign > 0 else min_tick)

    raw = math.log(value) - (base.decimals - quote.decimals) * LN_10
    return sign * raw / LN_TICK_BASE


def usable_tick_bounds(
    spacing: int, *, min_tick: int = MIN_TICK, max_tick: int = MAX_TICK
) -> tuple[int, int]:
    if spacing <= 0:
        raise ValueError(f"Tick spacing must be positive, got {spacing}")
    return math.ceil(min_tick / spacing) * spacing, math.floor(max_tick / spacing) * spacing


def align_tick_to_spacing(
    tick: int | float,
    spacing: int,
    round_mode: RoundMode | str = RoundMode.DOWN,
    *,
    min_tick: int = MIN_TICK,
    max_tick: int = MAX_TICK,
) -> int:
    if math.isnan(tick):
        raise ValueError("Cannot align a NaN tick")
    lo, hi = usable_tick_bounds(spacing, min_tick=min_tick, max_tick=max_tick)
    if math.isinf(tick):
        return hi if tick > 0 else lo

    mode = RoundMode(round_mode)
    if mode == RoundMode.UP:
        aligned = math.ceil(tick / spacing) * spacing
    else:
        aligned = math.floor(tick / spacing) * spacing
    return int(min(max(aligned, lo), hi))


def nearest_usable_tick(
    tick: int | float,
    spacing: int,
    *,
    min_tick: int = MIN_TICK,
    max_tick: int = MAX_TICK,
) -> int:
    lo, hi = usable_tick_bounds(spacing, min_tick=min_tick, max_tick=max_tick)
    if math.isinf(tick):
        return hi if tick > 0 else lo
    aligned = round(tick / spacing) * spacing
    return int(min(max(aligned, lo), hi))


def is_tick_at_limit(tick: int, spacing: int) -> tuple[bool, bool]:
    """Return ``(at_min, at_max)`` against the usable bounds for ``spacing``."""
    lo, hi = usable_tick_bounds(spacing)
    return tick <= lo, tick >= hi


def price_range_for_ticks(
    tick_range: TickRange,
    quote: TokenRef,
    base: TokenRef,
    ordering: PoolOrdering,
) -> tuple[float, float]:
    """Display ``(min_price, max_price)`` of ``base`` in ``quote`` for a range.

    When ``base`` is canonical1 the price falls as the tick rises, so the
    lower tick gives the maximum price.
    """
    at_lower = tick_to_price(tick_range.lower, quote, base, ordering)
    at_upper = tick_to_price(tick_range.upper, quote, base, ordering)
    if ordering.is_canonical0(base):
        return at_lower, at_upper
    return at_upper, at_lower


def range_percentages(tick_range: TickRange, current_tick: int) -> tuple[float, float]:
    """Distance of each range end from the current tick, in percent."""
    lower_ratio = math.exp((tick_range.lower - current_tick) * LN_TICK_BASE)
    upper_ratio = math.exp((tick_range.upper - current_tick) * LN_TICK_BASE)
    return (1 - lower_ratio) * 100, (upper_ratio - 1) * 100


def sqrt_price_x96_to_price(sqrtpx96: int, decimals0: int, decimals1: int) -> float:
    if sqrtpx96 <= 0:
        return 0.0
    p = (sqrtpx96 / Q96) ** 2
    scale = 10 ** (decimals1 - decimals0)
    return p / scale


def tick_from_sqrt_price_x96(sqrt_price_x96: int) -> int:
    ratio = float(sqrt_price_x96) / Q96
    if ratio <= 0:
        raise InvalidPrice("sqrtPriceX96 must be positive")
    return math.floor(2 * math.log(ratio) / LN_TICK_BASE)
