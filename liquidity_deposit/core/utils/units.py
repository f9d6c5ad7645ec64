from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip())


def to_erc20_raw(amount_tokens: str | int | float | Decimal, decimals: int) -> int:
    if isinstance(amount_tokens, str) and not amount_tokens.strip():
        return 0
    try:
        amt = _to_decimal(amount_tokens)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount_tokens}") from exc
    if not amt.is_finite():
        raise ValueError(f"Invalid token amount: {amount_tokens}")
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    scale = Decimal(10) ** int(decimals)
    return int((amt * scale).to_integral_value(rounding=ROUND_DOWN))


def from_erc20_raw(amount_raw: int | str, decimals: int) -> Decimal:
    try:
        raw = int(amount_raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid raw token amount: {amount_raw}") from exc
    return Decimal(raw).scaleb(-int(decimals))


def format_token_amount(amount_raw: int | str, decimals: int) -> str:
    """Render a raw amount as a plain decimal string without trailing zeros."""
    value = from_erc20_raw(amount_raw, decimals)
    if value == 0:
        return "0"
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
