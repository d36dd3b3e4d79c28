"""Data types for the farming engine.

All records are frozen dataclasses (immutable); owners replace them with
``dataclasses.replace()`` when state changes.

Units/conventions:
- times are unix seconds (uint64).
- ``*_x128`` values are Q128 fixed point (see ``reward_math``).
- ``liquidity`` is the pool's raw liquidity unit (uint128).
- reward amounts are the reward token's smallest unit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Optional

# Tick bounds of the pool's price grid.
MIN_TICK: int = -887272
MAX_TICK: int = 887272

Account = str
TokenId = int


@dataclass(frozen=True, order=True)
class RangeId:
    """A pool sub-range ``[tick_lower, tick_upper)``."""

    pool: str
    tick_lower: int
    tick_upper: int

    def __post_init__(self) -> None:
        if not isinstance(self.pool, str) or not self.pool:
            raise ValueError("pool must be a non-empty string")
        for name, v in (("tick_lower", self.tick_lower), ("tick_upper", self.tick_upper)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if not (MIN_TICK <= self.tick_lower < self.tick_upper <= MAX_TICK):
            raise ValueError(
                f"invalid tick range: [{self.tick_lower}, {self.tick_upper})"
            )

    @classmethod
    def full(cls, pool: str) -> "RangeId":
        """The whole price grid of ``pool``."""
        return cls(pool, MIN_TICK, MAX_TICK)

    def contains(self, other: "RangeId") -> bool:
        return (
            self.pool == other.pool
            and self.tick_lower <= other.tick_lower
            and other.tick_upper <= self.tick_upper
        )

    def is_active_at(self, tick: int) -> bool:
        return self.tick_lower <= tick < self.tick_upper

    def to_dict(self) -> dict[str, Any]:
        return {"pool": self.pool, "tick_lower": self.tick_lower, "tick_upper": self.tick_upper}


@dataclass(frozen=True, order=True)
class FarmKey:
    """Farm identity: one range, one window."""

    range_id: RangeId
    start_time: int
    end_time: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range_id.to_dict(),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass(frozen=True)
class Farm:
    key: FarmKey
    sponsor: Account
    total_reward: int
    reward_unclaimed: int
    seconds_claimed_x128: int = 0
    ended: bool = False
    refund: int = 0

    @property
    def reward_credited(self) -> int:
        """Reward moved to closed stakes so far (excludes the refund)."""
        return self.total_reward - self.reward_unclaimed - self.refund


@dataclass(frozen=True)
class Deposit:
    token_id: TokenId
    owner: Account
    liquidity: int
    range_id: RangeId


@dataclass(frozen=True)
class Stake:
    """One participation window of a Deposit inside one Farm.

    ``snapshot_at_unstake_x128``, ``seconds_x128``, ``reward`` and
    ``closed_at`` stay None while the stake is open.
    """

    stake_id: int
    token_id: TokenId
    farm_key: FarmKey
    owner_at_open: Account
    liquidity: int
    snapshot_at_stake_x128: int
    opened_at: int
    snapshot_at_unstake_x128: Optional[int] = None
    seconds_x128: Optional[int] = None
    reward: Optional[int] = None
    closed_at: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


@dataclass(frozen=True)
class CloseResult:
    """What ``PositionLedger.close_stake`` computed for one stake."""

    stake: Stake
    seconds_x128: int
    reward: int
    denominator_x128: int
    # Sub-range never active while staked: legitimate, earns nothing.
    range_inactive: bool


@unique
class Event(Enum):
    FARM_CREATED = "FarmCreated"
    FARM_ENDED = "FarmEnded"
    DEPOSIT_REGISTERED = "DepositRegistered"
    DEPOSIT_TRANSFERRED = "DepositTransferred"
    DEPOSIT_WITHDRAWN = "DepositWithdrawn"
    STAKE_OPENED = "StakeOpened"
    REWARD_CREDITED = "RewardCredited"
    REWARD_HARVESTED = "RewardHarvested"


@dataclass(frozen=True)
class Effect:
    """Observable emitted after a committed operation."""

    event: Event
    time: int
    data: dict[str, Any] = field(default_factory=dict)
