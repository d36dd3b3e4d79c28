"""
Position ledger: Deposits and their per-Farm Stakes.

A Deposit is a position token held in custody. A Stake is one participation
window of a Deposit in one Farm, bounded by two accumulator snapshots. A
Deposit can be staked in several Farms at once; each Stake is accounted for
independently, and "how many Farms stake this Deposit" is always derived from
the open Stakes rather than stored.

Reward on close
---------------
The true denominator (all liquidity-seconds contributed to the Farm over its
whole window) is only known once the window is over, so each close uses the
best value available at that moment and already-credited shares are never
revised:

- before ``end_time``: the unclaimed part of the window,
  ``(end_time - start_time) * Q128 - seconds_claimed_x128``;
- at or after ``end_time``: this stake's liquidity-seconds plus those of every
  other still-open stake of the Farm, measured at ``end_time``.

The share is ``floor(reward_unclaimed * seconds / denominator)``. The result
depends on close order; that is intended. The last closer after
``end_time`` takes the whole remainder, so a fully-claimed Farm pays out its
budget exactly.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from .errors import (
    AlreadyDepositedError,
    AlreadyStakedError,
    ArithmeticOverflowError,
    FarmNotActiveError,
    InvalidParameterError,
    NoOpenStakeError,
    NotDepositedError,
    NotOwnerError,
    OracleError,
    RangeMismatchError,
    StakesStillOpenError,
)
from .reward_math import (
    UINT128_MAX,
    UINT256_MAX,
    liquidity_seconds,
    reward_share,
    window_seconds_x128,
)
from .types import Account, CloseResult, Deposit, Farm, FarmKey, RangeId, Stake, TokenId

# (range_id, timestamp) -> Q128 accumulator
SnapshotFn = Callable[[RangeId, int], int]

_StakeKey = Tuple[TokenId, FarmKey]


def _checked_snapshot(snapshot_fn: SnapshotFn, range_id: RangeId, t: int) -> int:
    value = snapshot_fn(range_id, t)
    if not isinstance(value, int) or isinstance(value, bool) or not (0 <= value <= UINT256_MAX):
        raise OracleError(f"oracle returned a non-uint256 accumulator: {value!r}")
    return value


class PositionLedger:
    """Single writer of Deposit and Stake records."""

    def __init__(self) -> None:
        self._deposits: Dict[TokenId, Deposit] = {}
        self._open: Dict[_StakeKey, Stake] = {}
        self._closed: List[Stake] = []
        self._next_stake_id: int = 1

    # -- Deposits -------------------------------------------------------------

    def register_deposit(self, token_id: TokenId, owner: Account, liquidity: int, range_id: RangeId) -> Deposit:
        """Record a position token that just entered custody."""
        if not isinstance(token_id, int) or isinstance(token_id, bool) or not (0 <= token_id <= UINT256_MAX):
            raise InvalidParameterError(f"token_id must be a uint256: {token_id!r}")
        if not isinstance(owner, str) or not owner:
            raise InvalidParameterError("owner must be a non-empty string")
        _require_liquidity(liquidity, allow_zero=True)
        if token_id in self._deposits:
            raise AlreadyDepositedError(f"token already deposited: {token_id}")
        deposit = Deposit(token_id=token_id, owner=owner, liquidity=liquidity, range_id=range_id)
        self._deposits[token_id] = deposit
        return deposit

    def get_deposit(self, token_id: TokenId) -> Deposit:
        deposit = self._deposits.get(token_id)
        if deposit is None:
            raise NotDepositedError(f"token not deposited: {token_id}")
        return deposit

    def has_deposit(self, token_id: TokenId) -> bool:
        return token_id in self._deposits

    def transfer_deposit(self, token_id: TokenId, caller: Account, new_owner: Account) -> Deposit:
        """Hand the Deposit (and the rewards of its future closes) to ``new_owner``."""
        deposit = self.get_deposit(token_id)
        if deposit.owner != caller:
            raise NotOwnerError(f"{caller} does not own deposit {token_id}")
        if not isinstance(new_owner, str) or not new_owner:
            raise InvalidParameterError("new_owner must be a non-empty string")
        updated = replace(deposit, owner=new_owner)
        self._deposits[token_id] = updated
        return updated

    def withdraw_deposit(self, token_id: TokenId, caller: Account) -> Deposit:
        """Remove the Deposit; only allowed once no Stake is open for it."""
        deposit = self.get_deposit(token_id)
        if deposit.owner != caller:
            raise NotOwnerError(f"{caller} does not own deposit {token_id}")
        open_count = self.open_stake_count(token_id)
        if open_count:
            raise StakesStillOpenError(f"deposit {token_id} still staked in {open_count} farm(s)")
        del self._deposits[token_id]
        return deposit

    def deposits(self) -> List[Deposit]:
        return [self._deposits[t] for t in sorted(self._deposits)]

    # -- Stakes ---------------------------------------------------------------

    def open_stake(
        self,
        token_id: TokenId,
        farm: Farm,
        caller: Account,
        snapshot_fn: SnapshotFn,
        *,
        now: int,
        liquidity: Optional[int] = None,
    ) -> Stake:
        """
        Open a Stake of ``token_id`` in ``farm`` at ``now``.

        ``liquidity`` is the position's current liquidity as reported by the
        position registry; it refreshes the Deposit and is frozen into the
        Stake. When omitted the Deposit's recorded liquidity is used.

        Raises:
            NotDepositedError, NotOwnerError, RangeMismatchError,
            FarmNotActiveError, AlreadyStakedError, InvalidParameterError
        """
        deposit = self.get_deposit(token_id)
        if deposit.owner != caller:
            raise NotOwnerError(f"{caller} does not own deposit {token_id}")
        key = farm.key
        if not key.range_id.contains(deposit.range_id):
            raise RangeMismatchError(f"deposit range {deposit.range_id} not covered by farm range {key.range_id}")
        if farm.ended or not (key.start_time <= now <= key.end_time):
            raise FarmNotActiveError(
                f"farm not accepting stakes at {now} (window [{key.start_time}, {key.end_time}], ended={farm.ended})"
            )
        if (token_id, key) in self._open:
            raise AlreadyStakedError(f"token {token_id} already staked in {key}")

        frozen = deposit.liquidity if liquidity is None else liquidity
        _require_liquidity(frozen, allow_zero=False)
        snapshot = _checked_snapshot(snapshot_fn, deposit.range_id, now)

        if frozen != deposit.liquidity:
            self._deposits[token_id] = replace(deposit, liquidity=frozen)
        stake = Stake(
            stake_id=self._next_stake_id,
            token_id=token_id,
            farm_key=key,
            owner_at_open=deposit.owner,
            liquidity=frozen,
            snapshot_at_stake_x128=snapshot,
            opened_at=now,
        )
        self._next_stake_id += 1
        self._open[(token_id, key)] = stake
        return stake

    def close_stake(self, token_id: TokenId, farm: Farm, snapshot_fn: SnapshotFn, *, now: int) -> CloseResult:
        """
        Close the open Stake of ``token_id`` in ``farm`` and compute its reward.

        Does not touch the Farm record; the engine feeds the result into
        ``FarmRegistry.credit_stake_close``.
        """
        result = self.preview_close(token_id, farm, snapshot_fn, now=now)
        key = (token_id, farm.key)
        del self._open[key]
        self._closed.append(result.stake)
        return result

    def preview_close(self, token_id: TokenId, farm: Farm, snapshot_fn: SnapshotFn, *, now: int) -> CloseResult:
        """What ``close_stake`` would compute at ``now``, without closing."""
        stake = self._open.get((token_id, farm.key))
        if stake is None:
            raise NoOpenStakeError(f"no open stake for token {token_id} in {farm.key}")
        deposit = self.get_deposit(token_id)

        key = farm.key
        t_close = min(now, key.end_time)
        acc_end = _checked_snapshot(snapshot_fn, deposit.range_id, t_close)
        seconds = liquidity_seconds(stake.snapshot_at_stake_x128, acc_end, stake.liquidity)

        if now < key.end_time:
            denominator = window_seconds_x128(key.start_time, key.end_time) - farm.seconds_claimed_x128
            if denominator < 0:
                raise ArithmeticOverflowError("farm liquidity-seconds tally exceeds its window")
        else:
            denominator = seconds
            for other in self.open_stakes_for_farm(key):
                if other.token_id == token_id:
                    continue
                other_range = self.get_deposit(other.token_id).range_id
                other_end = _checked_snapshot(snapshot_fn, other_range, key.end_time)
                denominator += liquidity_seconds(other.snapshot_at_stake_x128, other_end, other.liquidity)
            if denominator > UINT256_MAX:
                raise ArithmeticOverflowError("farm liquidity-seconds exceed 256 bits")

        reward = reward_share(seconds, denominator, farm.reward_unclaimed)
        closed = replace(
            stake,
            snapshot_at_unstake_x128=acc_end,
            seconds_x128=seconds,
            reward=reward,
            closed_at=now,
        )
        return CloseResult(
            stake=closed,
            seconds_x128=seconds,
            reward=reward,
            denominator_x128=denominator,
            range_inactive=acc_end == stake.snapshot_at_stake_x128,
        )

    def get_stake(self, token_id: TokenId, key: FarmKey) -> Optional[Stake]:
        """The open Stake for the pair, or None."""
        return self._open.get((token_id, key))

    def open_stakes_for_farm(self, key: FarmKey) -> List[Stake]:
        return sorted((s for (_, k), s in self._open.items() if k == key), key=lambda s: s.stake_id)

    def open_stakes_for_token(self, token_id: TokenId) -> List[Stake]:
        return sorted((s for (t, _), s in self._open.items() if t == token_id), key=lambda s: s.stake_id)

    def open_stake_count(self, token_id: TokenId) -> int:
        return sum(1 for (t, _) in self._open if t == token_id)

    def open_stakes(self) -> List[Stake]:
        return sorted(self._open.values(), key=lambda s: s.stake_id)

    def stake_history(self) -> List[Stake]:
        """Every Stake ever opened (closed ones included), in opening order."""
        return sorted([*self._closed, *self._open.values()], key=lambda s: s.stake_id)

    # -- Checkpointing --------------------------------------------------------

    def snapshot(self) -> tuple:
        return (dict(self._deposits), dict(self._open), list(self._closed), self._next_stake_id)

    def restore(self, snap: tuple) -> None:
        deposits, open_stakes, closed, next_id = snap
        self._deposits = dict(deposits)
        self._open = dict(open_stakes)
        self._closed = list(closed)
        self._next_stake_id = next_id

    def __repr__(self) -> str:
        return f"PositionLedger({len(self._deposits)} deposits, {len(self._open)} open stakes)"


def _require_liquidity(liquidity: int, *, allow_zero: bool) -> None:
    if not isinstance(liquidity, int) or isinstance(liquidity, bool):
        raise InvalidParameterError("liquidity must be an int")
    if liquidity < 0 or liquidity > UINT128_MAX:
        raise InvalidParameterError(f"liquidity out of uint128 range: {liquidity}")
    if liquidity == 0 and not allow_zero:
        raise InvalidParameterError("cannot stake a position with zero liquidity")
