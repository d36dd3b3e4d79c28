"""
In-memory clock and accumulator oracle.

``ScheduledAccumulatorOracle`` replays a pool's history as piecewise-constant
segments of (current tick, in-range positions). For a sub-range it integrates

    Q128 / active_liquidity

over every segment in which the pool's tick lies inside the sub-range and
some liquidity is active, flooring per segment. The result is the pool's
seconds-per-active-liquidity accumulator restricted to that sub-range, which
is exactly what ``AccumulatorOracle.snapshot`` promises.

History is written at the clock's current time only, so it can never be
rewritten retroactively; querying a timestamp after the clock raises
``OracleError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Hashable, List, Mapping, Tuple

from ..core.errors import InvalidParameterError, OracleError
from ..core.interfaces import Clock
from ..core.reward_math import Q128, UINT64_MAX, UINT128_MAX
from ..core.types import MAX_TICK, MIN_TICK, RangeId

logger = logging.getLogger(__name__)


class ManualClock:
    """Clock the test or replay driver moves by hand. Never goes backwards."""

    def __init__(self, now: int = 0) -> None:
        self._now = _require_time(now)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def set(self, t: int) -> int:
        t = _require_time(t)
        if t < self._now:
            raise InvalidParameterError(f"clock cannot move backwards: {t} < {self._now}")
        self._now = t
        return t

    def advance(self, seconds: int) -> int:
        if not isinstance(seconds, int) or isinstance(seconds, bool) or seconds < 0:
            raise InvalidParameterError(f"seconds must be a non-negative int: {seconds!r}")
        return self.set(self._now + seconds)


def _require_time(t: int) -> int:
    if not isinstance(t, int) or isinstance(t, bool) or not (0 <= t <= UINT64_MAX):
        raise InvalidParameterError(f"time must be a uint64: {t!r}")
    return t


@dataclass(frozen=True)
class _PoolState:
    tick: int = 0
    # position key -> (range, liquidity); zero-liquidity positions are dropped
    positions: Mapping[Hashable, Tuple[RangeId, int]] = field(default_factory=dict)

    def active_liquidity(self) -> int:
        return sum(liq for rng, liq in self.positions.values() if rng.is_active_at(self.tick))


class ScheduledAccumulatorOracle:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._history: Dict[str, List[Tuple[int, _PoolState]]] = {}

    # -- Writers (at the clock's current time) --------------------------------

    def set_tick(self, pool: str, tick: int) -> None:
        """Move the pool's current price tick."""
        if not isinstance(tick, int) or isinstance(tick, bool) or not (MIN_TICK <= tick <= MAX_TICK):
            raise InvalidParameterError(f"tick out of range: {tick!r}")
        self._record(pool, replace(self.current(pool), tick=tick))

    def set_position(self, key: Hashable, range_id: RangeId, liquidity: int) -> None:
        """Add, resize, or (with ``liquidity == 0``) remove one position."""
        if not isinstance(liquidity, int) or isinstance(liquidity, bool) or not (0 <= liquidity <= UINT128_MAX):
            raise InvalidParameterError(f"liquidity must be a uint128: {liquidity!r}")
        state = self.current(range_id.pool)
        positions = dict(state.positions)
        if liquidity:
            positions[key] = (range_id, liquidity)
        else:
            positions.pop(key, None)
        self._record(range_id.pool, replace(state, positions=positions))

    def current(self, pool: str) -> _PoolState:
        history = self._history.get(pool)
        return history[-1][1] if history else _PoolState()

    def active_liquidity(self, pool: str) -> int:
        return self.current(pool).active_liquidity()

    def _record(self, pool: str, state: _PoolState) -> None:
        now = self._clock()
        history = self._history.setdefault(pool, [])
        if history and history[-1][0] > now:
            raise OracleError(f"pool {pool} history is ahead of the clock: {history[-1][0]} > {now}")
        if history and history[-1][0] == now:
            history[-1] = (now, state)
        else:
            history.append((now, state))
        logger.debug("pool %s at t=%d: tick=%d active=%d", pool, now, state.tick, state.active_liquidity())

    # -- AccumulatorOracle ----------------------------------------------------

    def snapshot(self, range_id: RangeId, timestamp: int) -> int:
        """Q128 seconds-per-active-liquidity inside ``range_id`` from pool genesis to ``timestamp``."""
        if not isinstance(timestamp, int) or isinstance(timestamp, bool) or timestamp < 0:
            raise OracleError(f"timestamp must be a non-negative int: {timestamp!r}")
        if timestamp > self._clock():
            raise OracleError(f"no accumulator data yet for t={timestamp} (now={self._clock()})")

        history = self._history.get(range_id.pool, [])
        acc = 0
        for i, (t0, state) in enumerate(history):
            if t0 >= timestamp:
                break
            t1 = history[i + 1][0] if i + 1 < len(history) else timestamp
            t1 = min(t1, timestamp)
            if t1 <= t0 or not range_id.is_active_at(state.tick):
                continue
            liquidity = state.active_liquidity()
            if liquidity:
                acc += ((t1 - t0) * Q128) // liquidity
        return acc
