"""Farming engine: the composition root.

Every public operation:

1. Reads ``now`` once from the shared clock (it must never move backwards).
2. Runs guards and mutations against FarmRegistry / PositionLedger / the
   AccruedReward table, querying the oracle synchronously where needed.
3. Checks all ledger invariants on the post-state.
4. Performs the single external transfer the operation needs (if any).
5. Appends an ``Effect`` to ``events``.

Any exception in steps 2-4 restores the internal tables to their state
before the operation and propagates unchanged. The last committed ``now`` is
only advanced once the operation commits. Records are immutable, so a
checkpoint is a handful of shallow dict copies.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from ..state.balances import BalanceTable
from ..state.state_root import compute_farm_id, compute_state_root
from .config import FarmingConfig
from .errors import (
    InsufficientAccruedError,
    InvalidParameterError,
    InvariantViolationError,
    NotOwnerError,
)
from .farm_registry import FarmRegistry
from .interfaces import AccumulatorOracle, Clock, PositionRegistry, RewardToken
from .invariants import LedgerView, check_all
from .position_ledger import PositionLedger
from .reward_math import UINT64_MAX, UINT256_MAX
from .types import Account, Deposit, Effect, Event, Farm, FarmKey, RangeId, Stake, TokenId

logger = logging.getLogger(__name__)


@dataclass
class _Tx:
    """Per-operation scratch: deferred external transfer and pending effects."""

    now: int
    effects: List[Effect] = field(default_factory=list)
    transfer: Optional[Callable[[], None]] = None
    custody_delta: int = 0

    def emit(self, event: Event, **data: Any) -> None:
        self.effects.append(Effect(event=event, time=self.now, data=data))


class FarmingEngine:
    """
    Liquidity-mining reward engine.

    Owns the AccruedReward table; delegates Farms to ``FarmRegistry`` and
    Deposits/Stakes to ``PositionLedger``.
    """

    def __init__(
        self,
        *,
        oracle: AccumulatorOracle,
        reward_token: RewardToken,
        positions: PositionRegistry,
        clock: Clock,
        config: FarmingConfig = FarmingConfig(),
    ) -> None:
        self.config = config
        self.registry = FarmRegistry(config)
        self.ledger = PositionLedger()
        self._accrued = BalanceTable()
        self.events: List[Effect] = []
        self._oracle = oracle
        self._reward_token = reward_token
        self._positions = positions
        self._clock = clock
        self._last_now = 0

    # -- Operation plumbing ---------------------------------------------------

    def _read_clock(self) -> int:
        now = self._clock()
        if not isinstance(now, int) or isinstance(now, bool) or not (0 <= now <= UINT64_MAX):
            raise InvalidParameterError(f"clock returned a non-uint64 time: {now!r}")
        if now < self._last_now:
            raise InvalidParameterError(f"clock moved backwards: {now} < {self._last_now}")
        return now

    @contextmanager
    def _operation(self, name: str) -> Iterator[_Tx]:
        tx = _Tx(now=self._read_clock())
        farms = self.registry.snapshot()
        ledger = self.ledger.snapshot()
        accrued = self._accrued.snapshot()
        try:
            yield tx
            self._verify(tx.custody_delta)
            if tx.transfer is not None:
                tx.transfer()
        except Exception:
            self.registry.restore(farms)
            self.ledger.restore(ledger)
            self._accrued.restore(accrued)
            raise
        self._last_now = tx.now
        self.events.extend(tx.effects)
        logger.debug("%s committed at t=%d (%d effects)", name, tx.now, len(tx.effects))

    def _verify(self, custody_delta: int) -> None:
        if not self.config.check_invariants:
            return
        custody = self._reward_token.balance_of(self.config.custody_account) + custody_delta
        violations = check_all(self.view(custody_balance=custody))
        if violations:
            raise InvariantViolationError(violations)

    def _snapshot(self, range_id: RangeId, timestamp: int) -> int:
        return self._oracle.snapshot(range_id, timestamp)

    # -- Farms ----------------------------------------------------------------

    def create_farm(
        self,
        range_id: RangeId,
        start_time: int,
        end_time: int,
        total_reward: int,
        sponsor: Account,
    ) -> FarmKey:
        """Escrow ``total_reward`` from ``sponsor`` for a new Farm and return its key."""
        if not isinstance(range_id, RangeId):
            raise InvalidParameterError("range_id must be a RangeId")
        key = FarmKey(range_id=range_id, start_time=start_time, end_time=end_time)
        with self._operation("create_farm") as tx:
            farm = self.registry.create_farm(key, total_reward, sponsor, now=tx.now)
            tx.custody_delta = farm.total_reward
            tx.transfer = lambda: self._reward_token.transfer_in(sponsor, total_reward)
            tx.emit(
                Event.FARM_CREATED,
                farm_id=compute_farm_id(key),
                sponsor=sponsor,
                total_reward=total_reward,
            )
        logger.info("farm %s created by %s with %d reward", compute_farm_id(key), sponsor, total_reward)
        return key

    def end_farm(self, key: FarmKey, caller: Account) -> int:
        """End a Farm and refund its unclaimed budget to the sponsor."""
        with self._operation("end_farm") as tx:
            refund = self.registry.end_farm(key, caller, now=tx.now)
            sponsor = self.registry.get(key).sponsor
            if refund:
                tx.custody_delta = -refund
                tx.transfer = lambda: self._reward_token.transfer_out(sponsor, refund)
            tx.emit(Event.FARM_ENDED, farm_id=compute_farm_id(key), caller=caller, refund=refund)
        logger.info("farm %s ended by %s, refunded %d", compute_farm_id(key), caller, refund)
        return refund

    def farm(self, key: FarmKey) -> Farm:
        return self.registry.get(key)

    # -- Deposits -------------------------------------------------------------

    def deposit(self, token_id: TokenId, owner: Account, stake_into: Iterable[FarmKey] = ()) -> Deposit:
        """
        Take custody of a position token and register it.

        Optionally stakes it into every farm in ``stake_into`` in the same
        atomic step.
        """
        with self._operation("deposit") as tx:
            if self._positions.owner_of(token_id) != owner:
                raise NotOwnerError(f"{owner} does not own position {token_id}")
            info = self._positions.position(token_id)
            deposit = self.ledger.register_deposit(token_id, owner, info.liquidity, info.range_id)
            tx.emit(Event.DEPOSIT_REGISTERED, token_id=token_id, owner=owner, liquidity=info.liquidity)
            for key in stake_into:
                self._stake(tx, token_id, key, owner)
            deposit = self.ledger.get_deposit(token_id)
            custody = self.config.custody_account
            tx.transfer = lambda: self._positions.transfer(token_id, owner, custody)
        return deposit

    def transfer_deposit(self, token_id: TokenId, new_owner: Account, *, caller: Account) -> Deposit:
        """Reassign a Deposit without unstaking it."""
        with self._operation("transfer_deposit") as tx:
            deposit = self.ledger.transfer_deposit(token_id, caller, new_owner)
            tx.emit(Event.DEPOSIT_TRANSFERRED, token_id=token_id, old_owner=caller, new_owner=new_owner)
        return deposit

    def withdraw(self, token_id: TokenId, recipient: Account, *, caller: Account) -> Deposit:
        """Return custody of a fully unstaked position token to ``recipient``."""
        if not isinstance(recipient, str) or not recipient:
            raise InvalidParameterError("recipient must be a non-empty string")
        with self._operation("withdraw") as tx:
            deposit = self.ledger.withdraw_deposit(token_id, caller)
            custody = self.config.custody_account
            tx.transfer = lambda: self._positions.transfer(token_id, custody, recipient)
            tx.emit(Event.DEPOSIT_WITHDRAWN, token_id=token_id, owner=caller, recipient=recipient)
        return deposit

    def deposit_of(self, token_id: TokenId) -> Deposit:
        return self.ledger.get_deposit(token_id)

    def open_stake_count(self, token_id: TokenId) -> int:
        return self.ledger.open_stake_count(token_id)

    # -- Stakes ---------------------------------------------------------------

    def stake(self, token_id: TokenId, key: FarmKey, *, caller: Account) -> Stake:
        with self._operation("stake") as tx:
            stake = self._stake(tx, token_id, key, caller)
        return stake

    def _stake(self, tx: _Tx, token_id: TokenId, key: FarmKey, caller: Account) -> Stake:
        farm = self.registry.get(key)
        self.ledger.get_deposit(token_id)
        # Registry-side liquidity may have changed since the last stake.
        liquidity = self._positions.position(token_id).liquidity
        stake = self.ledger.open_stake(
            token_id, farm, caller, self._snapshot, now=tx.now, liquidity=liquidity,
        )
        tx.emit(
            Event.STAKE_OPENED,
            token_id=token_id,
            farm_id=compute_farm_id(key),
            stake_id=stake.stake_id,
            liquidity=stake.liquidity,
        )
        return stake

    def unstake(self, token_id: TokenId, key: FarmKey, *, caller: Account) -> int:
        """Close the open Stake and credit its reward to the Deposit owner. Returns the reward."""
        with self._operation("unstake") as tx:
            farm = self.registry.get(key)
            deposit = self.ledger.get_deposit(token_id)
            if deposit.owner != caller:
                raise NotOwnerError(f"{caller} does not own deposit {token_id}")
            result = self.ledger.close_stake(token_id, farm, self._snapshot, now=tx.now)
            self.registry.credit_stake_close(key, result.seconds_x128, result.reward)
            self._accrued.credit(deposit.owner, self.config.reward_asset, result.reward)
            tx.emit(
                Event.REWARD_CREDITED,
                token_id=token_id,
                farm_id=compute_farm_id(key),
                stake_id=result.stake.stake_id,
                account=deposit.owner,
                reward=result.reward,
                seconds_x128=result.seconds_x128,
                range_inactive=result.range_inactive,
            )
        if result.range_inactive:
            logger.info("stake %d closed with an inactive range; no reward", result.stake.stake_id)
        return result.reward

    def get_reward_info(self, token_id: TokenId, key: FarmKey) -> Tuple[int, int]:
        """``(reward, seconds_x128)`` that unstaking now would credit. Read-only."""
        now = self._read_clock()
        farm = self.registry.get(key)
        result = self.ledger.preview_close(token_id, farm, self._snapshot, now=now)
        return result.reward, result.seconds_x128

    # -- Rewards --------------------------------------------------------------

    def harvest(self, account: Account, amount: int = 0) -> int:
        """
        Pay ``account`` its own accrued reward. ``amount == 0`` means "everything".

        The payout always goes to ``account``, whoever triggers it.

        Harvesting an empty balance is a successful no-op. Returns the amount
        transferred.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or not (0 <= amount <= UINT256_MAX):
            raise InvalidParameterError(f"amount must be a uint256: {amount!r}")
        with self._operation("harvest") as tx:
            balance = self._accrued.get(account, self.config.reward_asset)
            if amount == 0:
                amount = balance
            elif amount > balance:
                raise InsufficientAccruedError(f"requested {amount}, accrued {balance}")
            if amount:
                self._accrued.debit(account, self.config.reward_asset, amount)
                tx.custody_delta = -amount
                tx.transfer = lambda: self._reward_token.transfer_out(account, amount)
                tx.emit(Event.REWARD_HARVESTED, account=account, amount=amount)
        return amount

    def accrued(self, account: Account) -> int:
        return self._accrued.get(account, self.config.reward_asset)

    # -- Views ----------------------------------------------------------------

    def view(self, *, custody_balance: Optional[int] = None) -> LedgerView:
        return LedgerView(
            farms=tuple(self.registry.farms()),
            deposits=tuple(self.ledger.deposits()),
            stakes=tuple(self.ledger.stake_history()),
            accrued_total=self._accrued.total(self.config.reward_asset),
            custody_balance=custody_balance,
        )

    def state_root(self) -> str:
        return compute_state_root(
            farms=self.registry.farms(),
            deposits=self.ledger.deposits(),
            stakes=self.ledger.stake_history(),
            accrued=self._accrued,
        )
