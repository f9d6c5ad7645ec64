from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Literal

from liquidity_deposit.core.errors import DepositError
from liquidity_deposit.core.models import RawTransaction, TokenRef, TypedDataPayload


class StepKind(StrEnum):
    INPUT = "input"
    APPROVING = "approve"
    PERMIT_SIGNING = "permit2Sign"
    MINTING = "mint"
    DONE = "done"


@dataclass(frozen=True)
class Input:
    kind: ClassVar[StepKind] = StepKind.INPUT


@dataclass(frozen=True)
class Approving:
    token: TokenRef
    spender: str
    amount: int
    kind: ClassVar[StepKind] = StepKind.APPROVING


@dataclass(frozen=True)
class PermitSigning:
    typed_data: TypedDataPayload
    permit2_address: str
    tokens: tuple[TokenRef, ...]
    token_symbol: str | None = None
    kind: ClassVar[StepKind] = StepKind.PERMIT_SIGNING


@dataclass(frozen=True)
class Minting:
    transaction: RawTransaction
    kind: ClassVar[StepKind] = StepKind.MINTING


@dataclass(frozen=True)
class Done:
    tx_hash: str
    kind: ClassVar[StepKind] = StepKind.DONE


DepositState = Input | Approving | PermitSigning | Minting | Done


@dataclass(frozen=True)
class Notification:
    level: Literal["info", "success", "error"]
    title: str
    message: str
    tx_hash: str | None = None
    error: DepositError | None = None
