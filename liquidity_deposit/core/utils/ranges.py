from __future__ import annotations

import math

from loguru import logger

from liquidity_deposit.core.constants.base import MAX_TICK, MIN_TICK
from liquidity_deposit.core.errors import InvalidRange, RangeTooNarrow
from liquidity_deposit.core.models import PoolOrdering, TickRange, TokenRef
from liquidity_deposit.core.utils.tick_price import (
    LN_TICK_BASE,
    RoundMode,
    align_tick_to_spacing,
    nearest_usable_tick,
    price_to_tick,
    usable_tick_bounds,
)

FULL_RANGE = "full range"

PRESETS: dict[str, float | None] = {
    "±3%": 0.03,
    "±8%": 0.08,
    "±15%": 0.15,
    FULL_RANGE: None,
}


def parse_preset(preset: str | float) -> float | None:
    """Return the preset's fractional half-width, or ``None`` for full range.

    Accepts the named presets, percent strings such as ``"±0.5%"`` and plain
    fractions ``0 < p < 1``.
    """
    if isinstance(preset, str):
        key = preset.strip()
        if key.lower() == FULL_RANGE:
            return None
        if key in PRESETS:
            return PRESETS[key]
        text = key.lstrip("±+").strip()
        try:
            if text.endswith("%"):
                pct = float(text[:-1]) / 100
            else:
                pct = float(text)
        except ValueError as exc:
            raise InvalidRange(f"Unknown range preset: {preset!r}") from exc
    elif isinstance(preset, bool):
        raise InvalidRange(f"Unknown range preset: {preset!r}")
    else:
        pct = float(preset)

    if not 0 < pct < 1:
        raise InvalidRange(f"Preset width must be between 0 and 1, got {pct}")
    return pct


def full_range(
    spacing: int, *, min_tick: int = MIN_TICK, max_tick: int = MAX_TICK
) -> TickRange:
    lower, upper = usable_tick_bounds(spacing, min_tick=min_tick, max_tick=max_tick)
    return TickRange(lower, upper)


def _center_tick(
    center_tick: int | None,
    center_price: float | str | None,
    quote: TokenRef | None,
    base: TokenRef | None,
    ordering: PoolOrdering | None,
) -> float:
    if center_tick is not None:
        return center_tick
    if center_price is None or quote is None or base is None or ordering is None:
        raise InvalidRange("A center tick or a center price with its tokens is required")
    return price_to_tick(center_price, quote, base, ordering)


def resolve_preset_range(
    preset: str | float,
    spacing: int,
    *,
    center_tick: int | None = None,
    center_price: float | str | None = None,
    quote: TokenRef | None = None,
    base: TokenRef | None = None,
    ordering: PoolOrdering | None = None,
    min_tick: int = MIN_TICK,
    max_tick: int = MAX_TICK,
) -> TickRange:
    """Turn a preset and the pool's current position into an aligned range.

    The lower end rounds up and the upper end rounds down, so alignment never
    widens the range beyond the requested percentage. A result narrower than
    one spacing raises :class:`RangeTooNarrow`.
    """
    pct = parse_preset(preset)
    if pct is None:
        return full_range(spacing, min_tick=min_tick, max_tick=max_tick)

    center = _center_tick(center_tick, center_price, quote, base, ordering)
    delta_upper = round(math.log(1 + pct) / LN_TICK_BASE)
    delta_lower = round(math.log(1 - pct) / LN_TICK_BASE)

    lower = align_tick_to_spacing(
        center + delta_lower, spacing, RoundMode.UP, min_tick=min_tick, max_tick=max_tick
    )
    upper = align_tick_to_spacing(
        center + delta_upper,
        spacing,
        RoundMode.DOWN,
        min_tick=min_tick,
        max_tick=max_tick,
    )
    if upper - lower < spacing:
        raise RangeTooNarrow(lower, upper, spacing)

    logger.debug(
        f"Resolved preset {preset!r} around tick {center:.2f} to [{lower}, {upper}]"
    )
    return TickRange(lower, upper)


def range_from_prices(
    min_price: float | str,
    max_price: float | str,
    quote: TokenRef,
    base: TokenRef,
    ordering: PoolOrdering,
    spacing: int,
) -> TickRange:
    """Build a range from two typed display prices of ``base`` in ``quote``."""
    tick_a = price_to_tick(min_price, quote, base, ordering)
    tick_b = price_to_tick(max_price, quote, base, ordering)
    lower, upper = sorted(
        (nearest_usable_tick(tick_a, spacing), nearest_usable_tick(tick_b, spacing))
    )
    if upper - lower < spacing:
        raise RangeTooNarrow(lower, upper, spacing)
    return TickRange(lower, upper)
