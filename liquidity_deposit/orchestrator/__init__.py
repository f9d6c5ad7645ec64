from liquidity_deposit.orchestrator.calculation import PairedAmountCalculator
from liquidity_deposit.orchestrator.ledger import (
    CompletionLedger,
    CompletionProgress,
    completed_count,
    involved_count,
    progress,
)
from liquidity_deposit.orchestrator.machine import DepositStateMachine
from liquidity_deposit.orchestrator.state import (
    Approving,
    DepositState,
    Done,
    Input,
    Minting,
    Notification,
    PermitSigning,
    StepKind,
)

__all__ = [
    "Approving",
    "CompletionLedger",
    "CompletionProgress",
    "DepositState",
    "DepositStateMachine",
    "Done",
    "Input",
    "Minting",
    "Notification",
    "PairedAmountCalculator",
    "PermitSigning",
    "StepKind",
    "completed_count",
    "involved_count",
    "progress",
]
