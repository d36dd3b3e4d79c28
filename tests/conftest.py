"""Shared fixtures: an in-memory engine and a small driver for common flows."""

from __future__ import annotations

from typing import Iterable, Optional

import pytest

from rangefarm.core.types import FarmKey, RangeId
from rangefarm.integration import InMemoryEnvironment, build_in_memory_engine

POOL = "pool-A"
FULL_RANGE = RangeId.full(POOL)
START = 1_000_000
# 30 days; divisible by 12 so every phase boundary the scenarios use is whole.
DURATION = 2_592_000
END = START + DURATION
TOTAL_REWARD = 3_000
# Power of two, so Q128 / (n * LIQ) divides evenly for the scenario splits.
LIQ = 1 << 60
SPONSOR = "sponsor"


class Farming:
    """Drives the common mint -> deposit -> stake / unstake -> withdraw flows."""

    def __init__(self, env: InMemoryEnvironment) -> None:
        self.env = env
        self.engine = env.engine

    def at(self, t: int) -> "Farming":
        self.env.clock.set(t)
        return self

    def create_farm(
        self,
        *,
        range_id: RangeId = FULL_RANGE,
        start: int = START,
        end: int = END,
        reward: int = TOTAL_REWARD,
        sponsor: str = SPONSOR,
    ) -> FarmKey:
        self.env.reward_token.mint(sponsor, reward)
        return self.engine.create_farm(range_id, start, end, reward, sponsor)

    def mint(self, token_id: int, owner: str, *, liquidity: int = LIQ, range_id: RangeId = FULL_RANGE) -> int:
        self.env.positions.mint(token_id, owner, range_id, liquidity)
        return token_id

    def mint_deposit_stake(
        self,
        token_id: int,
        owner: str,
        keys: Iterable[FarmKey],
        *,
        liquidity: int = LIQ,
        range_id: RangeId = FULL_RANGE,
    ) -> int:
        self.mint(token_id, owner, liquidity=liquidity, range_id=range_id)
        self.engine.deposit(token_id, owner, stake_into=list(keys))
        return token_id

    def unstake_withdraw_burn(self, token_id: int, owner: str, key: FarmKey) -> int:
        """Unstake, harvest, withdraw and remove the liquidity. Returns what was paid out."""
        self.engine.unstake(token_id, key, caller=owner)
        paid = self.engine.harvest(owner)
        self.engine.withdraw(token_id, owner, caller=owner)
        self.env.positions.set_liquidity(token_id, 0)
        return paid

    def reward_balance(self, account: str) -> int:
        return self.env.reward_token.balance_of(account)


@pytest.fixture
def env() -> InMemoryEnvironment:
    return build_in_memory_engine(start_time=START)


@pytest.fixture
def farming(env: InMemoryEnvironment) -> Farming:
    return Farming(env)


@pytest.fixture
def farm(farming: Farming) -> FarmKey:
    return farming.create_farm()


def custody_balance(env: InMemoryEnvironment, account: Optional[str] = None) -> int:
    return env.reward_token.balance_of(account or env.engine.config.custody_account)
