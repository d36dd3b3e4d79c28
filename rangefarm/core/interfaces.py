"""
Boundary the engine consumes.

The functional core only depends on these protocols; concrete adapters (the
in-memory ones in `rangefarm.integration`, or a chain client) live in the
imperative shell.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from .types import Account, RangeId, TokenId

# Shared monotonic clock, unix seconds.
Clock = Callable[[], int]


class AccumulatorOracle(Protocol):
    def snapshot(self, range_id: RangeId, timestamp: int) -> int:
        """
        Q128 seconds-per-active-liquidity accumulator of ``range_id`` at ``timestamp``.

        Monotonic non-decreasing in ``timestamp``. A timestamp the oracle has
        no data for yet (the future) raises ``OracleError``.
        """
        ...


class RewardToken(Protocol):
    def balance_of(self, account: Account) -> int:
        ...

    def transfer_in(self, account: Account, amount: int) -> None:
        """Move ``amount`` from ``account`` into engine custody (all-or-nothing)."""
        ...

    def transfer_out(self, account: Account, amount: int) -> None:
        """Move ``amount`` from engine custody to ``account`` (all-or-nothing)."""
        ...


@dataclass(frozen=True)
class PositionInfo:
    range_id: RangeId
    liquidity: int


class PositionRegistry(Protocol):
    def owner_of(self, token_id: TokenId) -> Account:
        ...

    def position(self, token_id: TokenId) -> PositionInfo:
        ...

    def transfer(self, token_id: TokenId, from_account: Account, to_account: Account) -> None:
        ...
