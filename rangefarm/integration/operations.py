"""
Operation-log parsing and replay.

An operation log is a list of JSON-like dicts applied in order against an
``InMemoryEnvironment``. Every entry carries ``"op"`` and ``"time"`` (the
clock is moved to ``time`` first; it may not go backwards).

Engine operations:

    create_farm       range, start_time, end_time, total_reward, sponsor
    end_farm          farm, caller
    deposit           token_id, owner, [stake_into: [farm, ...]]
    stake             token_id, farm, caller
    unstake           token_id, farm, caller
    harvest           account, [amount]            (paid to account)
    withdraw          token_id, recipient, caller
    transfer_deposit  token_id, new_owner, caller

Environment operations (outside the engine, needed to make a log
self-contained):

    mint_reward       account, amount
    mint_position     token_id, owner, range, liquidity
    set_liquidity     token_id, liquidity
    set_tick          pool, tick

``range`` is ``{"pool", "tick_lower", "tick_upper"}``; ``farm`` is
``{"range", "start_time", "end_time"}``.

A rejected operation does not stop the replay: it is recorded as an
``OpResult`` with ``ok=False`` and the error's taxonomy ``code``, and the
engine, token and position state is left as it was before that operation.
The clock is the exception: ``time`` is the log's own timestamp, so once an
entry's ``time`` is valid the clock stays there even if the entry is then
rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.errors import FarmingError
from ..core.types import FarmKey, RangeId
from ..state.canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex
from ..state.state_root import compute_farm_id
from .environment import InMemoryEnvironment

logger = logging.getLogger(__name__)

MALFORMED_OP = "MalformedOp"


def _require_str(value: Any, *, name: str, non_empty: bool = True, max_len: int = 4096) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    if non_empty and not value:
        raise ValueError(f"{name} must be non-empty")
    if max_len > 0 and len(value) > max_len:
        raise ValueError(f"{name} too large")
    return value


def _require_int(value: Any, *, name: str, non_negative: bool = False) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an int")
    if non_negative and value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _require_dict_str_keys(value: Any, *, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object")
    for k in value.keys():
        if not isinstance(k, str):
            raise ValueError(f"{name} keys must be strings")
    return value


def parse_range(value: Any, *, name: str = "range") -> RangeId:
    data = _require_dict_str_keys(value, name=name)
    try:
        return RangeId(
            pool=_require_str(data.get("pool"), name=f"{name}.pool"),
            tick_lower=_require_int(data.get("tick_lower"), name=f"{name}.tick_lower"),
            tick_upper=_require_int(data.get("tick_upper"), name=f"{name}.tick_upper"),
        )
    except TypeError as e:
        raise ValueError(f"{name}: {e}") from e


def parse_farm_key(value: Any, *, name: str = "farm") -> FarmKey:
    data = _require_dict_str_keys(value, name=name)
    return FarmKey(
        range_id=parse_range(data.get("range"), name=f"{name}.range"),
        start_time=_require_int(data.get("start_time"), name=f"{name}.start_time", non_negative=True),
        end_time=_require_int(data.get("end_time"), name=f"{name}.end_time", non_negative=True),
    )


@dataclass(frozen=True)
class OpResult:
    index: int
    op: str
    ok: bool
    code: Optional[str] = None
    error: Optional[str] = None
    value: Any = None


@dataclass(frozen=True)
class ReplayResult:
    results: List[OpResult]
    state_root: str
    # sha256 over the canonical JSON of the log; identifies what was replayed
    log_digest: str

    @property
    def rejected(self) -> List[OpResult]:
        return [r for r in self.results if not r.ok]


_Handler = Callable[[InMemoryEnvironment, Dict[str, Any]], Any]


def _op_create_farm(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    key = env.engine.create_farm(
        parse_range(op.get("range")),
        _require_int(op.get("start_time"), name="start_time"),
        _require_int(op.get("end_time"), name="end_time"),
        _require_int(op.get("total_reward"), name="total_reward"),
        _require_str(op.get("sponsor"), name="sponsor"),
    )
    return compute_farm_id(key)


def _op_end_farm(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    return env.engine.end_farm(parse_farm_key(op.get("farm")), _require_str(op.get("caller"), name="caller"))


def _op_deposit(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    raw = op.get("stake_into", [])
    if not isinstance(raw, list):
        raise ValueError("stake_into must be a list")
    keys = [parse_farm_key(v, name=f"stake_into[{i}]") for i, v in enumerate(raw)]
    env.engine.deposit(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        _require_str(op.get("owner"), name="owner"),
        stake_into=keys,
    )
    return None


def _op_stake(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    stake = env.engine.stake(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        parse_farm_key(op.get("farm")),
        caller=_require_str(op.get("caller"), name="caller"),
    )
    return stake.stake_id


def _op_unstake(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    return env.engine.unstake(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        parse_farm_key(op.get("farm")),
        caller=_require_str(op.get("caller"), name="caller"),
    )


def _op_harvest(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    if "recipient" in op:
        raise ValueError("harvest pays the account itself; recipient is not accepted")
    return env.engine.harvest(
        _require_str(op.get("account"), name="account"),
        _require_int(op.get("amount", 0), name="amount", non_negative=True),
    )


def _op_withdraw(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    env.engine.withdraw(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        _require_str(op.get("recipient"), name="recipient"),
        caller=_require_str(op.get("caller"), name="caller"),
    )
    return None


def _op_transfer_deposit(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    env.engine.transfer_deposit(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        _require_str(op.get("new_owner"), name="new_owner"),
        caller=_require_str(op.get("caller"), name="caller"),
    )
    return None


def _op_mint_reward(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    return env.reward_token.mint(
        _require_str(op.get("account"), name="account"),
        _require_int(op.get("amount"), name="amount", non_negative=True),
    )


def _op_mint_position(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    env.positions.mint(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        _require_str(op.get("owner"), name="owner"),
        parse_range(op.get("range")),
        _require_int(op.get("liquidity"), name="liquidity", non_negative=True),
    )
    return None


def _op_set_liquidity(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    env.positions.set_liquidity(
        _require_int(op.get("token_id"), name="token_id", non_negative=True),
        _require_int(op.get("liquidity"), name="liquidity", non_negative=True),
    )
    return None


def _op_set_tick(env: InMemoryEnvironment, op: Dict[str, Any]) -> Any:
    env.oracle.set_tick(
        _require_str(op.get("pool"), name="pool"),
        _require_int(op.get("tick"), name="tick"),
    )
    return None


OP_HANDLERS: Dict[str, _Handler] = {
    "create_farm": _op_create_farm,
    "end_farm": _op_end_farm,
    "deposit": _op_deposit,
    "stake": _op_stake,
    "unstake": _op_unstake,
    "harvest": _op_harvest,
    "withdraw": _op_withdraw,
    "transfer_deposit": _op_transfer_deposit,
    "mint_reward": _op_mint_reward,
    "mint_position": _op_mint_position,
    "set_liquidity": _op_set_liquidity,
    "set_tick": _op_set_tick,
}


def apply_operation(env: InMemoryEnvironment, index: int, op: Any) -> OpResult:
    """Apply one log entry. Never raises for a rejected or malformed entry."""
    name = "?"
    try:
        data = _require_dict_str_keys(op, name=f"ops[{index}]")
        name = _require_str(data.get("op"), name="op")
        handler = OP_HANDLERS.get(name)
        if handler is None:
            raise ValueError(f"unknown op: {name!r}")
        env.clock.set(_require_int(data.get("time"), name="time", non_negative=True))
        value = handler(env, data)
    except FarmingError as e:
        logger.warning("op %d (%s) rejected: %s: %s", index, name, e.code, e)
        return OpResult(index=index, op=name, ok=False, code=e.code, error=str(e))
    except ValueError as e:
        logger.warning("op %d (%s) malformed: %s", index, name, e)
        return OpResult(index=index, op=name, ok=False, code=MALFORMED_OP, error=str(e))
    return OpResult(index=index, op=name, ok=True, value=value)


def replay(env: InMemoryEnvironment, ops: Sequence[Any]) -> ReplayResult:
    """
    Apply ``ops`` in order and return per-op results plus the final state root.

    Raises ``ValueError`` only when the log as a whole is not canonical JSON;
    individual bad entries become rejected ``OpResult``s.
    """
    if isinstance(ops, (str, bytes)) or isinstance(ops, Mapping):
        raise ValueError("ops must be a sequence of objects")
    digest = compute_log_digest(ops)
    results = [apply_operation(env, i, op) for i, op in enumerate(ops)]
    return ReplayResult(results=results, state_root=env.engine.state_root(), log_digest=digest)


def compute_log_digest(ops: Sequence[Any]) -> str:
    """
    Digest of an operation log.

    Raises ``ValueError`` for logs that have no canonical JSON form (floats,
    non-string keys, surrogates).
    """
    try:
        body = canonical_json_bytes(list(ops))
    except TypeError as e:
        raise ValueError(f"op log is not canonical JSON: {e}") from e
    return sha256_hex(domain_sep_bytes("op_log") + body)
