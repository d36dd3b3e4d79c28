"""
In-memory adapters, op-log replay and config loading
"""

from .config import config_from_mapping, load_config
from .environment import InMemoryEnvironment, build_in_memory_engine
from .operations import OpResult, ReplayResult, apply_operation, compute_log_digest, replay
from .oracle import ManualClock, ScheduledAccumulatorOracle
from .tokens import InMemoryPositionRegistry, InMemoryRewardToken

__all__ = [
    "config_from_mapping",
    "load_config",
    "InMemoryEnvironment",
    "build_in_memory_engine",
    "OpResult",
    "ReplayResult",
    "apply_operation",
    "compute_log_digest",
    "replay",
    "ManualClock",
    "ScheduledAccumulatorOracle",
    "InMemoryPositionRegistry",
    "InMemoryRewardToken",
]
