from __future__ import annotations

import logging

import pytest

from rangefarm.core.types import Event
from rangefarm.integration import build_in_memory_engine, compute_log_digest, replay
from rangefarm.integration.operations import MALFORMED_OP, apply_operation, parse_farm_key, parse_range

START = 1_000
END = START + 1_200
RANGE = {"pool": "pool-A", "tick_lower": -887272, "tick_upper": 887272}
FARM = {"range": RANGE, "start_time": START, "end_time": END}
L = 1 << 60


def _log() -> list[dict]:
    ops: list[dict] = [
        {"op": "mint_reward", "time": START, "account": "sponsor", "amount": 3000},
        {
            "op": "create_farm",
            "time": START,
            "range": RANGE,
            "start_time": START,
            "end_time": END,
            "total_reward": 3000,
            "sponsor": "sponsor",
        },
    ]
    for i in range(3):
        ops.append({"op": "mint_position", "time": START, "token_id": i, "owner": f"lp{i}", "range": RANGE, "liquidity": L})
        ops.append({"op": "deposit", "time": START, "token_id": i, "owner": f"lp{i}", "stake_into": [FARM]})
    ops += [
        {"op": "unstake", "time": START + 600, "token_id": 0, "farm": FARM, "caller": "lp0"},
        {"op": "set_liquidity", "time": START + 600, "token_id": 0, "liquidity": 0},
        {"op": "unstake", "time": END + 1, "token_id": 1, "farm": FARM, "caller": "lp1"},
        {"op": "unstake", "time": END + 1, "token_id": 2, "farm": FARM, "caller": "lp2"},
        {"op": "harvest", "time": END + 1, "account": "lp1"},
        {"op": "withdraw", "time": END + 2, "token_id": 1, "recipient": "lp1", "caller": "lp1"},
        {"op": "end_farm", "time": END + 2, "farm": FARM, "caller": "sponsor"},
    ]
    return ops


def test_replay_runs_the_early_exit_scenario() -> None:
    env = build_in_memory_engine(start_time=START)
    result = replay(env, _log())
    assert result.rejected == []
    values = {r.index: r.value for r in result.results if r.op in ("unstake", "harvest", "end_farm")}
    assert sorted(values.values()) == [0, 500, 1250, 1250, 1250]
    assert env.reward_token.balance_of("lp1") == 1250
    assert env.engine.farm(parse_farm_key(FARM)).ended
    assert result.state_root == env.engine.state_root()


def test_same_log_same_root() -> None:
    first = replay(build_in_memory_engine(start_time=START), _log())
    second = replay(build_in_memory_engine(start_time=START), _log())
    assert first.state_root == second.state_root
    assert first.log_digest == second.log_digest == compute_log_digest(_log())


def test_different_log_different_root() -> None:
    ops = _log()
    ops[-3] = {"op": "harvest", "time": END + 1, "account": "lp2"}
    base = replay(build_in_memory_engine(start_time=START), _log())
    changed = replay(build_in_memory_engine(start_time=START), ops)
    assert base.state_root != changed.state_root
    assert base.log_digest != changed.log_digest


def test_rejected_op_is_recorded_and_replay_continues(caplog) -> None:
    ops = _log()
    ops.insert(9, {"op": "unstake", "time": START + 600, "token_id": 0, "farm": FARM, "caller": "lp0"})
    env = build_in_memory_engine(start_time=START)
    with caplog.at_level(logging.WARNING, logger="rangefarm.integration.operations"):
        result = replay(env, ops)
    assert [(r.index, r.code) for r in result.rejected] == [(9, "NoOpenStake")]
    assert "NoOpenStake" in caplog.text
    assert result.state_root == replay(build_in_memory_engine(start_time=START), _log()).state_root


@pytest.mark.parametrize(
    "op",
    [
        "not an object",
        {"time": START},
        {"op": "teleport", "time": START},
        {"op": "harvest", "time": True, "account": "a"},
        {"op": "harvest", "time": START, "account": ""},
        {"op": "stake", "time": START, "token_id": 0, "farm": {"range": RANGE}, "caller": "a"},
        {"op": "create_farm", "time": START, "range": {**RANGE, "tick_lower": 5, "tick_upper": 5}},
        {"op": "deposit", "time": START, "token_id": 0, "owner": "a", "stake_into": FARM},
    ],
)
def test_malformed_ops(op) -> None:
    env = build_in_memory_engine(start_time=START)
    result = apply_operation(env, 0, op)
    assert not result.ok
    assert result.code == MALFORMED_OP
    assert env.engine.events == []


def test_clock_cannot_go_backwards_in_log() -> None:
    env = build_in_memory_engine(start_time=START)
    result = apply_operation(env, 0, {"op": "harvest", "time": START - 1, "account": "a"})
    assert result.code == "InvalidParameter"


def test_engine_errors_carry_taxonomy_code() -> None:
    env = build_in_memory_engine(start_time=START)
    result = apply_operation(
        env,
        0,
        {"op": "create_farm", "time": START, "range": RANGE, "start_time": START, "end_time": END,
         "total_reward": 10, "sponsor": "broke"},
    )
    assert result.code == "InsufficientFunds"


def test_events_follow_the_log() -> None:
    env = build_in_memory_engine(start_time=START)
    replay(env, _log()[:4])
    assert [e.event for e in env.engine.events] == [
        Event.FARM_CREATED,
        Event.DEPOSIT_REGISTERED,
        Event.STAKE_OPENED,
    ]


def test_log_with_floats_is_rejected() -> None:
    with pytest.raises(ValueError):
        replay(build_in_memory_engine(start_time=START), [{"op": "harvest", "time": 1.5, "account": "a"}])


def test_parse_range_wraps_type_errors() -> None:
    assert parse_range(RANGE).pool == "pool-A"
    with pytest.raises(ValueError):
        parse_range({"pool": "p", "tick_lower": "0", "tick_upper": 1})


def test_rejected_mint_position_leaves_no_token() -> None:
    env = build_in_memory_engine(start_time=START)
    bad = {"op": "mint_position", "time": START, "token_id": 7, "owner": "a", "range": RANGE, "liquidity": 1 << 128}
    good = {**bad, "liquidity": L}
    result = replay(env, [bad, good])
    assert [(r.ok, r.code) for r in result.results] == [(False, "InvalidParameter"), (True, None)]
    assert env.positions.position(7).liquidity == L


def test_harvest_entry_cannot_name_a_recipient() -> None:
    env = build_in_memory_engine(start_time=START)
    result = replay(env, _log()[:-3] + [{"op": "harvest", "time": END + 1, "account": "lp1", "recipient": "mallory"}])
    assert result.results[-1].code == MALFORMED_OP
    assert env.reward_token.balance_of("mallory") == 0
    assert env.engine.accrued("lp1") == 1250


def test_rejected_entry_still_moves_the_clock() -> None:
    env = build_in_memory_engine(start_time=START)
    result = apply_operation(env, 0, {"op": "harvest", "time": START + 50, "account": "a", "amount": 1})
    assert result.code == "InsufficientAccrued"
    assert env.clock.now == START + 50
    assert env.engine.events == []
