"""Property tests: random operation sequences against the in-memory engine.

Every step must leave the ledger invariants intact; rejected steps must leave
the state root untouched; the farm's liquidity-seconds tally only grows; and
once the farm is over and ended, every token of the budget is accounted for.
"""

from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

import hypothesis.strategies as st
from hypothesis import given, settings

from rangefarm.core.errors import FarmingError
from rangefarm.core.invariants import check_all
from rangefarm.core.types import RangeId
from rangefarm.integration import build_in_memory_engine

POOL = "pool-P"
START = 50_000
DURATION = 10_000
END = START + DURATION
REWARD = 1_000_003
SPONSOR = "sponsor"
RANGES = (
    RangeId.full(POOL),
    RangeId(POOL, -100, 100),
    RangeId(POOL, 0, 500),
    RangeId(POOL, -500, 0),
)
N_LPS = 4

_action = st.one_of(
    st.tuples(st.just("advance"), st.integers(min_value=0, max_value=DURATION // 4)),
    st.tuples(st.just("stake"), st.integers(min_value=0, max_value=N_LPS - 1)),
    st.tuples(st.just("unstake"), st.integers(min_value=0, max_value=N_LPS - 1)),
    st.tuples(st.just("harvest"), st.integers(min_value=0, max_value=N_LPS - 1)),
    st.tuples(st.just("tick"), st.integers(min_value=-600, max_value=600)),
    st.tuples(st.just("resize"), st.integers(min_value=0, max_value=N_LPS - 1)),
)


def _setup(liquidities):
    env = build_in_memory_engine(start_time=START)
    env.reward_token.mint(SPONSOR, REWARD)
    key = env.engine.create_farm(RANGES[0], START, END, REWARD, SPONSOR)
    for i, liq in enumerate(liquidities):
        env.positions.mint(i, f"lp{i}", RANGES[i % len(RANGES)], liq)
        env.engine.deposit(i, f"lp{i}")
    return env, key


def _custody(env):
    return env.reward_token.balance_of(env.engine.config.custody_account)


def _apply(env, key, action, arg):
    engine = env.engine
    if action == "advance":
        env.clock.advance(arg)
    elif action == "stake":
        engine.stake(arg, key, caller=f"lp{arg}")
    elif action == "unstake":
        engine.unstake(arg, key, caller=f"lp{arg}")
    elif action == "harvest":
        engine.harvest(f"lp{arg}")
    elif action == "tick":
        env.oracle.set_tick(POOL, arg)
    elif action == "resize":
        current = env.positions.position(arg).liquidity
        env.positions.set_liquidity(arg, max(1, current // 2))


@settings(max_examples=60, deadline=None)
@given(
    liquidities=st.lists(st.integers(min_value=1, max_value=1 << 80), min_size=N_LPS, max_size=N_LPS),
    actions=st.lists(_action, max_size=40),
)
def test_random_sequences_preserve_ledger_invariants(liquidities, actions):
    env, key = _setup(liquidities)
    engine = env.engine
    seconds_tally = 0

    for action, arg in actions:
        if action in ("stake", "unstake", "harvest"):
            before = engine.state_root()
            try:
                _apply(env, key, action, arg)
            except FarmingError:
                assert engine.state_root() == before
        else:
            _apply(env, key, action, arg)

        assert check_all(engine.view(custody_balance=_custody(env))) == []
        farm = engine.farm(key)
        assert farm.seconds_claimed_x128 >= seconds_tally
        seconds_tally = farm.seconds_claimed_x128
        assert farm.reward_credited + farm.refund <= farm.total_reward

    # Wind down: close everything after the window, end the farm, pay out.
    if env.clock.now <= END:
        env.clock.set(END + 1)
    for stake in engine.ledger.open_stakes():
        engine.unstake(stake.token_id, key, caller=engine.deposit_of(stake.token_id).owner)
    refund = engine.end_farm(key, SPONSOR)
    for i in range(N_LPS):
        engine.harvest(f"lp{i}")
    paid = sum(env.reward_token.balance_of(f"lp{i}") for i in range(N_LPS))

    farm = engine.farm(key)
    assert farm.reward_credited + farm.refund == farm.total_reward
    assert paid + refund == REWARD
    assert _custody(env) == 0
    assert env.reward_token.total_supply() == REWARD


@settings(max_examples=40, deadline=None)
@given(
    liquidities=st.lists(st.integers(min_value=1, max_value=1 << 64), min_size=N_LPS, max_size=N_LPS),
    exit_offsets=st.lists(st.integers(min_value=0, max_value=DURATION), min_size=N_LPS, max_size=N_LPS),
)
def test_everyone_staked_then_closed_after_end_pays_out_whole_budget(liquidities, exit_offsets):
    env, key = _setup(liquidities)
    engine = env.engine
    env.oracle.set_tick(POOL, 0)
    for i in range(N_LPS):
        engine.stake(i, key, caller=f"lp{i}")

    # Early exits in time order; the rest close after the window.
    order = sorted(range(N_LPS), key=lambda i: exit_offsets[i])
    for i in order:
        if exit_offsets[i] < DURATION:
            env.clock.set(max(env.clock.now, START + exit_offsets[i]))
            engine.unstake(i, key, caller=f"lp{i}")
    env.clock.set(END + 1)
    for stake in engine.ledger.open_stakes():
        engine.unstake(stake.token_id, key, caller=f"lp{stake.token_id}")

    farm = engine.farm(key)
    assert farm.reward_unclaimed >= 0
    assert farm.reward_credited <= REWARD
    assert sum(engine.accrued(f"lp{i}") for i in range(N_LPS)) == farm.reward_credited
