"""
In-memory reward token and position-token registry.

Both are reference adapters for the engine's consumed interfaces; a chain
client would implement the same methods.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from ..core.errors import InsufficientFundsError, InvalidParameterError, NotOwnerError
from ..core.interfaces import PositionInfo
from ..core.reward_math import UINT128_MAX, UINT256_MAX
from ..core.types import Account, RangeId, TokenId
from ..state.balances import BalanceTable
from .oracle import ScheduledAccumulatorOracle

logger = logging.getLogger(__name__)


def _require_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or not (0 <= amount <= UINT256_MAX):
        raise InvalidParameterError(f"amount must be a uint256: {amount!r}")
    return amount


def _require_liquidity(liquidity: int) -> int:
    if not isinstance(liquidity, int) or isinstance(liquidity, bool) or not (0 <= liquidity <= UINT128_MAX):
        raise InvalidParameterError(f"liquidity must be a uint128: {liquidity!r}")
    return liquidity


class InMemoryRewardToken:
    """Fungible reward token; ``custody_account`` is the engine's escrow."""

    def __init__(self, *, custody_account: Account, symbol: str = "RWD") -> None:
        self.custody_account = custody_account
        self.symbol = symbol
        self._balances = BalanceTable()

    def mint(self, account: Account, amount: int) -> int:
        return self._balances.credit(account, self.symbol, _require_amount(amount))

    def balance_of(self, account: Account) -> int:
        return self._balances.get(account, self.symbol)

    def total_supply(self) -> int:
        return self._balances.total(self.symbol)

    def transfer(self, sender: Account, recipient: Account, amount: int) -> None:
        _require_amount(amount)
        balance = self._balances.get(sender, self.symbol)
        if amount > balance:
            raise InsufficientFundsError(f"{sender} holds {balance} {self.symbol}, needs {amount}")
        self._balances.debit(sender, self.symbol, amount)
        self._balances.credit(recipient, self.symbol, amount)

    def transfer_in(self, account: Account, amount: int) -> None:
        self.transfer(account, self.custody_account, amount)

    def transfer_out(self, account: Account, amount: int) -> None:
        self.transfer(self.custody_account, account, amount)


class InMemoryPositionRegistry:
    """
    Non-fungible position tokens of a concentrated-liquidity pool.

    When an oracle is attached, every mint/resize/burn is mirrored into it so
    the pool's active liquidity follows the positions. Inputs are checked
    before anything is written, so a rejected call leaves no trace.
    """

    def __init__(self, oracle: Optional[ScheduledAccumulatorOracle] = None) -> None:
        self._oracle = oracle
        self._owners: Dict[TokenId, Account] = {}
        self._positions: Dict[TokenId, Tuple[RangeId, int]] = {}

    def mint(self, token_id: TokenId, owner: Account, range_id: RangeId, liquidity: int) -> PositionInfo:
        if not isinstance(token_id, int) or isinstance(token_id, bool) or not (0 <= token_id <= UINT256_MAX):
            raise InvalidParameterError(f"token_id must be a uint256: {token_id!r}")
        if token_id in self._owners:
            raise InvalidParameterError(f"position already minted: {token_id}")
        if not isinstance(owner, str) or not owner:
            raise InvalidParameterError("owner must be a non-empty string")
        if not isinstance(range_id, RangeId):
            raise InvalidParameterError("range_id must be a RangeId")
        _require_liquidity(liquidity)
        self._owners[token_id] = owner
        self._positions[token_id] = (range_id, 0)
        return self.set_liquidity(token_id, liquidity)

    def set_liquidity(self, token_id: TokenId, liquidity: int) -> PositionInfo:
        """Add to or remove from a position (the pool's increase/decrease liquidity)."""
        range_id, _ = self._require(token_id)
        _require_liquidity(liquidity)
        self._positions[token_id] = (range_id, liquidity)
        if self._oracle is not None:
            self._oracle.set_position(token_id, range_id, liquidity)
        return PositionInfo(range_id=range_id, liquidity=liquidity)

    def _require(self, token_id: TokenId) -> Tuple[RangeId, int]:
        position = self._positions.get(token_id)
        if position is None:
            raise InvalidParameterError(f"unknown position token: {token_id}")
        return position

    # -- PositionRegistry -----------------------------------------------------

    def owner_of(self, token_id: TokenId) -> Account:
        self._require(token_id)
        return self._owners[token_id]

    def position(self, token_id: TokenId) -> PositionInfo:
        range_id, liquidity = self._require(token_id)
        return PositionInfo(range_id=range_id, liquidity=liquidity)

    def transfer(self, token_id: TokenId, from_account: Account, to_account: Account) -> None:
        owner = self.owner_of(token_id)
        if owner != from_account:
            raise NotOwnerError(f"{from_account} does not hold position {token_id}")
        self._owners[token_id] = to_account
        logger.debug("position %d: %s -> %s", token_id, from_account, to_account)
