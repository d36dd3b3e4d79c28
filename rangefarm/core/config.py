"""Engine configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .reward_math import UINT64_MAX

DAY: int = 86_400


@dataclass(frozen=True)
class FarmingConfig:
    # Asset id of the reward token; AccruedReward is keyed by (account, reward_asset).
    reward_asset: str = "0x" + "00" * 32
    # Account that holds escrowed rewards and custodied position tokens.
    custody_account: str = "farming-engine"

    # Grace period after `end_time` during which only the sponsor may end a farm.
    claim_deadline: int = 1_000

    # Window policy for new farms.
    max_lead_time: int = 30 * DAY
    max_duration: int = 4 * 365 * DAY

    # Re-check ledger invariants after every operation (rolls back on violation).
    check_invariants: bool = True

    def __post_init__(self) -> None:
        for name, v in (
            ("reward_asset", self.reward_asset),
            ("custody_account", self.custody_account),
        ):
            if not isinstance(v, str) or not v:
                raise ValueError(f"{name} must be a non-empty string")
        for name, v in (
            ("claim_deadline", self.claim_deadline),
            ("max_lead_time", self.max_lead_time),
            ("max_duration", self.max_duration),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if not (0 <= v <= UINT64_MAX):
                raise ValueError(f"{name} must be in [0, 2^64): {v}")
        if self.max_duration == 0:
            raise ValueError("max_duration must be positive")
        if not isinstance(self.check_invariants, bool):
            raise TypeError("check_invariants must be a bool")
