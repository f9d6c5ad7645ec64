"""Step sequencer for a liquidity deposit.

The machine holds one tagged state value (``Input``, ``Approving``,
``PermitSigning``, ``Minting`` or ``Done``) and moves between them only via
``_apply_prepared`` and the failure policy in ``_fail``. After every wallet
side effect it asks the preparer again for the next step instead of
precomputing the sequence, since each approval can change what the chain
still requires.

At most one step is in flight. ``reset()`` bumps an epoch counter so that any
wallet call still pending when the user abandons the flow is ignored when it
eventually returns.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from liquidity_deposit.core.clients.protocols import (
    TransactionPreparerProtocol,
    WalletSignerProtocol,
)
from liquidity_deposit.core.errors import (
    DepositError,
    InvalidTransition,
    NetworkMismatch,
    PreparationFailed,
    TransactionReverted,
    UnexpectedPermitToken,
    WalletRejected,
    classify_wallet_error,
)
from liquidity_deposit.core.models import (
    DepositIntent,
    NeedsErc20Approval,
    NeedsPermitSignature,
    PreparedStep,
    ReadyToMint,
    TokenRef,
)
from liquidity_deposit.core.utils.permit2 import (
    build_permit_transaction,
    permit_token_addresses,
)
from liquidity_deposit.orchestrator.ledger import (
    CompletionLedger,
    CompletionProgress,
    progress,
)
from liquidity_deposit.orchestrator.state import (
    Approving,
    DepositState,
    Done,
    Input,
    Minting,
    Notification,
    PermitSigning,
)


class DepositStateMachine:
    def __init__(
        self,
        preparer: TransactionPreparerProtocol,
        wallet: WalletSignerProtocol,
        *,
        chain_id: int | None = None,
        tick_spacing: int | None = None,
        on_notify: Callable[[Notification], Any] | None = None,
        on_deposit_completed: Callable[[str], Any] | None = None,
    ):
        self.preparer = preparer
        self.wallet = wallet
        self.chain_id = chain_id
        self.tick_spacing = tick_spacing
        self.on_notify = on_notify
        self.on_deposit_completed = on_deposit_completed

        self.state: DepositState = Input()
        self.intent: DepositIntent | None = None
        self.prepared_step: PreparedStep | None = None
        self.ledger = CompletionLedger()
        self.is_working = False
        self.last_error: DepositError | None = None
        self._epoch = 0
        self.logger = logger.bind(component=self.__class__.__name__)

    @property
    def progress(self) -> CompletionProgress:
        return progress(self.intent, self.ledger)

    @property
    def epoch(self) -> int:
        return self._epoch

    # ------------------------------------------------------------------ #
    # Bookkeeping                                                        #
    # ------------------------------------------------------------------ #

    def _notify(self, notification: Notification) -> None:
        if self.on_notify is not None:
            self.on_notify(notification)

    def _begin(self, expected: type) -> int:
        if self.is_working:
            raise InvalidTransition("Another deposit step is already in progress")
        if not isinstance(self.state, expected):
            raise InvalidTransition(
                f"Cannot run {expected.__name__} step from state {self.state.kind}"
            )
        self.is_working = True
        self.last_error = None
        return self._epoch

    def _finish(self, epoch: int) -> None:
        if epoch == self._epoch:
            self.is_working = False

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch:
            self.logger.debug(f"Dropping result from abandoned step (epoch {epoch})")
            return True
        return False

    def _transition(self, state: DepositState) -> None:
        if state.kind != self.state.kind:
            self.logger.info(f"Deposit step {self.state.kind} -> {state.kind}")
        self.state = state

    def _ensure_network(self) -> None:
        actual = getattr(self.wallet, "chain_id", None)
        if self.chain_id is not None and actual is not None and actual != self.chain_id:
            raise NetworkMismatch(self.chain_id, actual)

    async def _confirm(self, tx_hash: str) -> None:
        status = await self.wallet.wait_for_receipt(tx_hash)
        if status != "confirmed":
            raise TransactionReverted(tx_hash)

    async def _prepare(self, token_just_processed: str | None = None) -> PreparedStep:
        try:
            return await self.preparer.prepare(self.intent, token_just_processed)
        except DepositError:
            raise
        except Exception as exc:
            raise PreparationFailed(str(exc)) from exc

    def _permit_tokens(self, step: NeedsPermitSignature) -> tuple[TokenRef, ...]:
        addresses = permit_token_addresses(step.typed_data.message)
        tokens = [self.intent.token_for_address(a) for a in addresses]
        unexpected = [a for a, t in zip(addresses, tokens, strict=True) if t is None]
        if unexpected:
            raise UnexpectedPermitToken(unexpected)
        return tuple(tokens)

    def _apply_prepared(self, step: PreparedStep) -> None:
        if isinstance(step, NeedsErc20Approval):
            token = self.intent.token_for_address(step.token)
            if token is None:
                raise PreparationFailed(
                    f"Approval requested for unknown token {step.token}"
                )
            next_state: DepositState = Approving(token, step.spender, step.amount)
        elif isinstance(step, NeedsPermitSignature):
            next_state = PermitSigning(
                typed_data=step.typed_data,
                permit2_address=step.permit2_address,
                tokens=self._permit_tokens(step),
                token_symbol=step.token_symbol,
            )
        elif isinstance(step, ReadyToMint):
            self.ledger = self.ledger.with_completed(
                t.symbol for t in self.intent.involved_tokens()
            )
            next_state = Minting(step.transaction)
        else:
            raise PreparationFailed(f"Unknown prepared step: {step!r}")

        self.prepared_step = step
        self._transition(next_state)

    def _fail(self, exc: BaseException, epoch: int, *, back_to_input: bool) -> None:
        if self._is_stale(epoch):
            return

        tx_hash = getattr(exc, "tx_hash", None)
        error = classify_wallet_error(
            exc, tx_hash=tx_hash, expected_chain_id=self.chain_id
        )
        self.last_error = error

        if isinstance(error, (WalletRejected, NetworkMismatch)):
            self.logger.warning(f"{self.state.kind} step not completed: {error}")
        elif back_to_input:
            self.logger.warning(f"{self.state.kind} step failed, back to input: {error}")
            self.prepared_step = None
            self._transition(Input())
        else:
            self.logger.warning(f"{self.state.kind} step failed: {error}")

        self._notify(
            Notification(
                level="error",
                title=type(error).__name__,
                message=error.message,
                tx_hash=getattr(error, "tx_hash", None),
                error=error,
            )
        )

    # ------------------------------------------------------------------ #
    # Transitions                                                        #
    # ------------------------------------------------------------------ #

    async def commit(self, intent: DepositIntent) -> DepositState:
        """Validate ``intent`` locally and ask the preparer for the first step."""
        if self.is_working:
            raise InvalidTransition("Another deposit step is already in progress")
        if not isinstance(self.state, Input):
            raise InvalidTransition(
                f"Cannot commit from state {self.state.kind}; reset first"
            )
        intent.validate(self.tick_spacing)

        self.intent = intent
        self.ledger = CompletionLedger.for_intent(intent)
        self.prepared_step = None
        epoch = self._begin(Input)
        try:
            step = await self._prepare()
            if self._is_stale(epoch):
                return self.state
            self._apply_prepared(step)
        except Exception as exc:
            self._fail(exc, epoch, back_to_input=True)
        finally:
            self._finish(epoch)
        return self.state

    async def confirm_approval(self) -> DepositState:
        epoch = self._begin(Approving)
        state: Approving = self.state
        try:
            self._ensure_network()
            tx_hash = await self.wallet.approve(
                state.token.address, state.spender, state.amount
            )
            self.logger.info(f"Approval for {state.token.symbol} sent: {tx_hash}")
            await self._confirm(tx_hash)
            if self._is_stale(epoch):
                return self.state

            step = await self._prepare(token_just_processed=state.token.symbol)
            if self._is_stale(epoch):
                return self.state

            same_token_again = isinstance(step, NeedsErc20Approval) and state.token.matches(
                step.token
            )
            if not same_token_again and state.token.symbol in self.ledger:
                self.ledger = self.ledger.with_completed([state.token.symbol])
            self._apply_prepared(step)
        except Exception as exc:
            self._fail(exc, epoch, back_to_input=True)
        finally:
            self._finish(epoch)
        return self.state

    async def sign_and_submit(self) -> DepositState:
        epoch = self._begin(PermitSigning)
        state: PermitSigning = self.state
        try:
            self._ensure_network()
            typed_data = state.typed_data
            signature = await self.wallet.sign_typed_data(
                typed_data.domain,
                typed_data.types,
                typed_data.primary_type,
                typed_data.message,
            )
            if self._is_stale(epoch):
                return self.state

            permit_tx = build_permit_transaction(
                state.permit2_address, self.wallet.address, typed_data.message, signature
            )
            tx_hash = await self.wallet.send_raw_transaction(
                permit_tx.to, permit_tx.data, permit_tx.value
            )
            self.logger.info(f"Permit submitted: {tx_hash}")
            await self._confirm(tx_hash)
            if self._is_stale(epoch):
                return self.state

            covered = [t.symbol for t in state.tokens if t.symbol in self.ledger]
            self.ledger = self.ledger.with_completed(covered)

            step = await self._prepare(
                token_just_processed=state.token_symbol or state.tokens[-1].symbol
            )
            if self._is_stale(epoch):
                return self.state
            self._apply_prepared(step)
        except Exception as exc:
            self._fail(exc, epoch, back_to_input=True)
        finally:
            self._finish(epoch)
        return self.state

    async def execute(self) -> DepositState:
        epoch = self._begin(Minting)
        state: Minting = self.state
        try:
            self._ensure_network()
            tx = state.transaction
            tx_hash = await self.wallet.send_raw_transaction(tx.to, tx.data, tx.value)
            self.logger.info(f"Deposit submitted: {tx_hash}")
            await self._confirm(tx_hash)
            if self._is_stale(epoch):
                return self.state

            self.prepared_step = None
            self._transition(Done(tx_hash))
            self._notify(
                Notification(
                    level="success",
                    title="Deposit completed",
                    message="Liquidity added to the pool",
                    tx_hash=tx_hash,
                )
            )
            if self.on_deposit_completed is not None:
                self.on_deposit_completed(tx_hash)
        except Exception as exc:
            self._fail(exc, epoch, back_to_input=False)
        finally:
            self._finish(epoch)
        return self.state

    def reset(self) -> None:
        """Return to ``Input`` and detach from any step still in flight."""
        self._epoch += 1
        self.is_working = False
        self.prepared_step = None
        self.ledger = CompletionLedger()
        self.last_error = None
        self._transition(Input())

    def update_intent(self, intent: DepositIntent) -> bool:
        """Record an edited intent. Returns True if the flow had to be reset."""
        was_reset = False
        if intent != self.intent and (
            self.is_working or not isinstance(self.state, Input)
        ):
            self.logger.info("Deposit intent changed mid-flow, resetting")
            self.reset()
            was_reset = True
        self.intent = intent
        return was_reset
