"""
rangefarm: liquidity-mining reward accounting for concentrated-liquidity pools.

Sponsors escrow a fixed reward budget for a pool sub-range and a time window
(a Farm). LPs deposit position tokens and stake them into Farms; each Stake
earns a share of the budget proportional to the liquidity-seconds it
contributed while the sub-range was active, read from the pool's
seconds-per-liquidity accumulator.
"""

from .core import (
    Farm,
    FarmKey,
    FarmingConfig,
    FarmingEngine,
    FarmingError,
    RangeId,
)

__all__ = [
    "Farm",
    "FarmKey",
    "FarmingConfig",
    "FarmingEngine",
    "FarmingError",
    "RangeId",
]
