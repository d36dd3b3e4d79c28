"""Wires a ``FarmingEngine`` to the in-memory adapters sharing one clock."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.config import FarmingConfig
from ..core.engine import FarmingEngine
from .oracle import ManualClock, ScheduledAccumulatorOracle
from .tokens import InMemoryPositionRegistry, InMemoryRewardToken


@dataclass
class InMemoryEnvironment:
    clock: ManualClock
    oracle: ScheduledAccumulatorOracle
    reward_token: InMemoryRewardToken
    positions: InMemoryPositionRegistry
    engine: FarmingEngine


def build_in_memory_engine(config: Optional[FarmingConfig] = None, *, start_time: int = 0) -> InMemoryEnvironment:
    config = config or FarmingConfig()
    clock = ManualClock(start_time)
    oracle = ScheduledAccumulatorOracle(clock)
    reward_token = InMemoryRewardToken(custody_account=config.custody_account)
    positions = InMemoryPositionRegistry(oracle)
    engine = FarmingEngine(
        oracle=oracle,
        reward_token=reward_token,
        positions=positions,
        clock=clock,
        config=config,
    )
    return InMemoryEnvironment(
        clock=clock,
        oracle=oracle,
        reward_token=reward_token,
        positions=positions,
        engine=engine,
    )
