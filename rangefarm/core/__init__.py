"""
Functional core: reward math, farm registry, position ledger, engine.
"""

from .config import FarmingConfig
from .engine import FarmingEngine
from .errors import FarmingError, InvariantViolationError
from .farm_registry import FarmRegistry
from .interfaces import AccumulatorOracle, Clock, PositionInfo, PositionRegistry, RewardToken
from .invariants import INVARIANT_REGISTRY, LedgerView, check_all
from .position_ledger import PositionLedger
from .reward_math import Q128, liquidity_seconds, reward_share
from .types import (
    CloseResult,
    Deposit,
    Effect,
    Event,
    Farm,
    FarmKey,
    RangeId,
    Stake,
)

__all__ = [
    "FarmingConfig",
    "FarmingEngine",
    "FarmingError",
    "InvariantViolationError",
    "FarmRegistry",
    "PositionLedger",
    "AccumulatorOracle",
    "Clock",
    "PositionInfo",
    "PositionRegistry",
    "RewardToken",
    "INVARIANT_REGISTRY",
    "LedgerView",
    "check_all",
    "Q128",
    "liquidity_seconds",
    "reward_share",
    "CloseResult",
    "Deposit",
    "Effect",
    "Event",
    "Farm",
    "FarmKey",
    "RangeId",
    "Stake",
]
