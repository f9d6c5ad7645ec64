from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Annotated, Any, Literal

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

from liquidity_deposit.core.constants.base import MAX_TICK, MIN_TICK
from liquidity_deposit.core.errors import InvalidIntent, InvalidRange


@dataclass(frozen=True)
class TokenRef:
    symbol: str
    address: str
    decimals: int
    display_decimals: int = 4

    def __post_init__(self) -> None:
        if not is_address(self.address):
            raise ValueError(f"Invalid token address for {self.symbol}: {self.address}")
        object.__setattr__(self, "address", to_checksum_address(self.address))
        if not 0 <= int(self.decimals) <= 36:
            raise ValueError(f"Invalid decimals for {self.symbol}: {self.decimals}")

    def matches(self, address: str) -> bool:
        return str(address).lower() == self.address.lower()


@dataclass(frozen=True)
class PoolOrdering:
    """Canonical token order of a pool, derived from address comparison."""

    canonical0: TokenRef
    canonical1: TokenRef

    @classmethod
    def from_tokens(cls, token_a: TokenRef, token_b: TokenRef) -> PoolOrdering:
        a, b = int(token_a.address, 16), int(token_b.address, 16)
        if a == b:
            raise InvalidIntent(
                f"Cannot order identical tokens {token_a.symbol}/{token_b.symbol}"
            )
        if a < b:
            return cls(canonical0=token_a, canonical1=token_b)
        return cls(canonical0=token_b, canonical1=token_a)

    def contains(self, token: TokenRef) -> bool:
        return self.canonical0.matches(token.address) or self.canonical1.matches(
            token.address
        )

    def is_canonical0(self, token: TokenRef) -> bool:
        return self.canonical0.matches(token.address)


@dataclass(frozen=True)
class TickRange:
    lower: int
    upper: int

    def __post_init__(self) -> None:
        if isinstance(self.lower, bool) or isinstance(self.upper, bool):
            raise InvalidRange("Ticks must be integers")
        if int(self.lower) != self.lower or int(self.upper) != self.upper:
            raise InvalidRange(f"Ticks must be integers: {self.lower}, {self.upper}")
        object.__setattr__(self, "lower", int(self.lower))
        object.__setattr__(self, "upper", int(self.upper))
        if self.lower >= self.upper:
            raise InvalidRange(
                f"Lower tick {self.lower} must be below upper tick {self.upper}"
            )

    @property
    def width(self) -> int:
        return self.upper - self.lower

    def validate_for_pool(
        self, spacing: int, *, min_tick: int = MIN_TICK, max_tick: int = MAX_TICK
    ) -> TickRange:
        if self.lower < min_tick or self.upper > max_tick:
            raise InvalidRange(
                f"Range [{self.lower}, {self.upper}] is outside [{min_tick}, {max_tick}]"
            )
        if spacing > 0 and (self.lower % spacing or self.upper % spacing):
            raise InvalidRange(
                f"Range [{self.lower}, {self.upper}] is not aligned to spacing {spacing}"
            )
        if spacing > 0 and self.width < spacing:
            raise InvalidRange(f"Range is narrower than one tick spacing ({spacing})")
        return self


class InputSide(StrEnum):
    TOKEN0 = "token0"
    TOKEN1 = "token1"


def parse_amount(value: str | None) -> Decimal | None:
    """Parse a user-typed amount. Empty means zero; garbage returns ``None``."""
    text = (value or "").strip()
    if not text:
        return Decimal(0)
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


@dataclass(frozen=True)
class DepositIntent:
    """A desired deposit. ``token0``/``token1`` are in user order, not pool order."""

    token0: TokenRef
    token1: TokenRef
    tick_range: TickRange
    token0_amount: str = ""
    token1_amount: str = ""
    active_input_side: InputSide = InputSide.TOKEN0
    ordering: PoolOrdering = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "ordering", PoolOrdering.from_tokens(self.token0, self.token1)
        )

    @property
    def tokens(self) -> tuple[TokenRef, TokenRef]:
        return (self.token0, self.token1)

    @property
    def input_token(self) -> TokenRef:
        return self.token0 if self.active_input_side == InputSide.TOKEN0 else self.token1

    @property
    def derived_token(self) -> TokenRef:
        return self.token1 if self.active_input_side == InputSide.TOKEN0 else self.token0

    @property
    def input_amount(self) -> str:
        if self.active_input_side == InputSide.TOKEN0:
            return self.token0_amount
        return self.token1_amount

    def amount_of(self, token: TokenRef) -> Decimal:
        if token not in self.tokens:
            raise KeyError(token.symbol)
        raw = self.token0_amount if token == self.token0 else self.token1_amount
        return parse_amount(raw) or Decimal(0)

    def involved_tokens(self) -> list[TokenRef]:
        return [t for t in self.tokens if self.amount_of(t) > 0]

    def token_for_address(self, address: str) -> TokenRef | None:
        return next((t for t in self.tokens if t.matches(address)), None)

    def token_for_symbol(self, symbol: str) -> TokenRef | None:
        return next((t for t in self.tokens if t.symbol == symbol), None)

    def with_amounts(
        self,
        token0_amount: str | None = None,
        token1_amount: str | None = None,
        active_input_side: InputSide | None = None,
    ) -> DepositIntent:
        return replace(
            self,
            token0_amount=self.token0_amount if token0_amount is None else token0_amount,
            token1_amount=self.token1_amount if token1_amount is None else token1_amount,
            active_input_side=active_input_side or self.active_input_side,
        )

    def with_derived_amount(self, amount: str) -> DepositIntent:
        if self.active_input_side == InputSide.TOKEN0:
            return self.with_amounts(token1_amount=amount)
        return self.with_amounts(token0_amount=amount)

    def with_range(self, tick_range: TickRange) -> DepositIntent:
        return replace(self, tick_range=tick_range)

    def validate(self, spacing: int | None = None) -> DepositIntent:
        for token, raw in (
            (self.token0, self.token0_amount),
            (self.token1, self.token1_amount),
        ):
            amount = parse_amount(raw)
            if amount is None:
                raise InvalidIntent(f"Invalid {token.symbol} amount: {raw!r}")
            if amount < 0:
                raise InvalidIntent(f"{token.symbol} amount must be non-negative")
        if not self.involved_tokens():
            raise InvalidIntent("Enter an amount for at least one token")
        self.tick_range.validate_for_pool(spacing or 0)
        return self


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


def _to_int(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    return value


IntLike = Annotated[int, BeforeValidator(_to_int)]


class TypedDataPayload(_WireModel):
    domain: dict[str, Any]
    types: dict[str, list[dict[str, str]]]
    primary_type: str = Field(alias="primaryType")
    message: dict[str, Any]


class RawTransaction(_WireModel):
    to: str
    data: str
    value: IntLike = 0


class NeedsErc20Approval(_WireModel):
    kind: Literal["needsErc20Approval"] = "needsErc20Approval"
    token: str
    spender: str
    amount: IntLike
    token_symbol: str | None = None


class NeedsPermitSignature(_WireModel):
    kind: Literal["needsPermitSignature"] = "needsPermitSignature"
    typed_data: TypedDataPayload
    permit2_address: str
    token_symbol: str | None = None


class ReadyToMint(_WireModel):
    kind: Literal["readyToMint"] = "readyToMint"
    transaction: RawTransaction


PreparedStep = Annotated[
    NeedsErc20Approval | NeedsPermitSignature | ReadyToMint,
    Field(discriminator="kind"),
]
PREPARED_STEP_ADAPTER: TypeAdapter[PreparedStep] = TypeAdapter(PreparedStep)


class AmountQuote(_WireModel):
    """Reply of the liquidity-amount calculator. Amounts are raw integers."""

    paired_amount: IntLike
    liquidity: IntLike
    current_tick: int
    current_price: float | None = None
    price_at_tick_lower: float | None = None
    price_at_tick_upper: float | None = None
    tick_lower: int | None = None
    tick_upper: int | None = None


class PoolState(_WireModel):
    tick: int
    price: float
    sqrt_price_x96: IntLike
    tick_spacing: int | None = None
