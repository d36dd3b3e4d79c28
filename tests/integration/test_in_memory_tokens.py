from __future__ import annotations

import pytest

from rangefarm.core.errors import InsufficientFundsError, InvalidParameterError, NotOwnerError
from rangefarm.core.types import RangeId
from rangefarm.integration import InMemoryPositionRegistry, InMemoryRewardToken, ManualClock, ScheduledAccumulatorOracle

RANGE = RangeId("pool-A", -60, 60)


def test_reward_token_custody_moves() -> None:
    token = InMemoryRewardToken(custody_account="engine")
    token.mint("alice", 100)
    token.transfer_in("alice", 60)
    assert token.balance_of("engine") == 60
    token.transfer_out("bob", 25)
    assert token.balance_of("bob") == 25
    assert token.total_supply() == 100


def test_reward_token_is_all_or_nothing() -> None:
    token = InMemoryRewardToken(custody_account="engine")
    token.mint("alice", 10)
    with pytest.raises(InsufficientFundsError):
        token.transfer_in("alice", 11)
    assert token.balance_of("alice") == 10
    assert token.balance_of("engine") == 0
    with pytest.raises(InvalidParameterError):
        token.transfer("alice", "bob", -1)


def test_position_registry_mint_and_transfer() -> None:
    registry = InMemoryPositionRegistry()
    info = registry.mint(1, "alice", RANGE, 500)
    assert info.liquidity == 500
    assert registry.owner_of(1) == "alice"
    registry.transfer(1, "alice", "bob")
    assert registry.owner_of(1) == "bob"
    with pytest.raises(NotOwnerError):
        registry.transfer(1, "alice", "carol")


def test_position_registry_rejects_unknown_and_duplicate() -> None:
    registry = InMemoryPositionRegistry()
    with pytest.raises(InvalidParameterError):
        registry.position(9)
    registry.mint(1, "alice", RANGE, 1)
    with pytest.raises(InvalidParameterError):
        registry.mint(1, "bob", RANGE, 1)


def test_position_registry_mirrors_liquidity_into_oracle() -> None:
    clock = ManualClock(0)
    oracle = ScheduledAccumulatorOracle(clock)
    registry = InMemoryPositionRegistry(oracle)
    registry.mint(1, "alice", RANGE, 500)
    registry.mint(2, "bob", RANGE, 300)
    assert oracle.active_liquidity("pool-A") == 800
    registry.set_liquidity(2, 100)
    assert oracle.active_liquidity("pool-A") == 600
    assert registry.position(2).liquidity == 100


@pytest.mark.parametrize(
    "token_id,owner,range_id,liquidity",
    [
        (1, "alice", RANGE, 1 << 128),
        (1, "alice", RANGE, -1),
        (1, "alice", ("pool-A", -60, 60), 5),
        (True, "alice", RANGE, 5),
    ],
)
def test_rejected_mint_leaves_no_position(token_id, owner, range_id, liquidity) -> None:
    clock = ManualClock(0)
    oracle = ScheduledAccumulatorOracle(clock)
    registry = InMemoryPositionRegistry(oracle)
    with pytest.raises(InvalidParameterError):
        registry.mint(token_id, owner, range_id, liquidity)
    with pytest.raises(InvalidParameterError):
        registry.owner_of(1)
    assert oracle.active_liquidity("pool-A") == 0
    # the same token id can still be minted afterwards
    assert registry.mint(1, "alice", RANGE, 5).liquidity == 5
