"""
Farm registry: lifecycle and reward-escrow bookkeeping for Farms.

The registry is the single writer of ``Farm`` records. It never moves tokens;
the engine performs the escrow transfer and calls in here to record it.

Escrow accounting per Farm:

    total_reward = reward_unclaimed + credited_to_closed_stakes + refund

``reward_unclaimed`` starts at ``total_reward``, shrinks on every stake close,
and is swept into ``refund`` when the Farm ends.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List

from .config import FarmingConfig
from .errors import (
    AlreadyEndedError,
    ArithmeticOverflowError,
    DuplicateFarmError,
    InvalidParameterError,
    InvalidWindowError,
    NotYetEndableError,
    UnknownFarmError,
)
from .reward_math import UINT64_MAX, UINT256_MAX
from .types import Account, Farm, FarmKey


class FarmRegistry:
    """
    Owned collection of Farms keyed by ``FarmKey``.

    Callers only get immutable ``Farm`` snapshots back; all mutation goes
    through the methods below so the escrow identity above always holds.
    """

    def __init__(self, config: FarmingConfig = FarmingConfig()) -> None:
        self._config = config
        self._farms: Dict[FarmKey, Farm] = {}

    def create_farm(self, key: FarmKey, total_reward: int, sponsor: Account, *, now: int) -> Farm:
        """
        Register a new Farm with ``total_reward`` in escrow.

        Raises:
            InvalidWindowError: empty/inverted window, start in the past,
                start too far ahead, or duration over the configured maximum.
            InvalidParameterError: non-positive or too-wide reward.
            DuplicateFarmError: a non-ended Farm with the same key exists.
        """
        for name, v in (("start_time", key.start_time), ("end_time", key.end_time)):
            if not isinstance(v, int) or isinstance(v, bool) or not (0 <= v <= UINT64_MAX):
                raise InvalidWindowError(f"{name} must be a uint64: {v!r}")
        if key.end_time <= key.start_time:
            raise InvalidWindowError(
                f"end_time must be after start_time: {key.start_time} >= {key.end_time}"
            )
        if key.start_time < now:
            raise InvalidWindowError(f"start_time is in the past: {key.start_time} < {now}")
        if key.start_time - now > self._config.max_lead_time:
            raise InvalidWindowError(
                f"start_time too far in the future: {key.start_time - now}s > {self._config.max_lead_time}s"
            )
        if key.end_time - key.start_time > self._config.max_duration:
            raise InvalidWindowError(
                f"farm duration too long: {key.end_time - key.start_time}s > {self._config.max_duration}s"
            )

        if not isinstance(total_reward, int) or isinstance(total_reward, bool):
            raise InvalidParameterError("total_reward must be an int")
        if total_reward <= 0:
            raise InvalidParameterError(f"total_reward must be positive: {total_reward}")
        if total_reward > UINT256_MAX:
            raise ArithmeticOverflowError("total_reward exceeds 256 bits")
        if not isinstance(sponsor, str) or not sponsor:
            raise InvalidParameterError("sponsor must be a non-empty string")

        existing = self._farms.get(key)
        if existing is not None and not existing.ended:
            raise DuplicateFarmError(f"farm already exists: {key}")

        farm = Farm(
            key=key,
            sponsor=sponsor,
            total_reward=total_reward,
            reward_unclaimed=total_reward,
        )
        self._farms[key] = farm
        return farm

    def get(self, key: FarmKey) -> Farm:
        farm = self._farms.get(key)
        if farm is None:
            raise UnknownFarmError(f"no such farm: {key}")
        return farm

    def is_active(self, key: FarmKey, now: int) -> bool:
        """True when new stakes are accepted at ``now``."""
        farm = self._farms.get(key)
        if farm is None or farm.ended:
            return False
        return key.start_time <= now <= key.end_time

    def credit_stake_close(self, key: FarmKey, seconds_x128: int, reward: int) -> Farm:
        """
        Record a closed stake: add its liquidity-seconds to the running tally
        and release ``reward`` from the unclaimed pool.

        The tally only ever grows.
        """
        farm = self.get(key)
        if seconds_x128 < 0 or reward < 0:
            raise InvalidParameterError("credit must be non-negative")
        if reward > farm.reward_unclaimed:
            raise ArithmeticOverflowError(
                f"credit exceeds unclaimed reward: {reward} > {farm.reward_unclaimed}"
            )
        new_seconds = farm.seconds_claimed_x128 + seconds_x128
        if new_seconds > UINT256_MAX:
            raise ArithmeticOverflowError("farm liquidity-seconds tally exceeds 256 bits")
        updated = replace(
            farm,
            seconds_claimed_x128=new_seconds,
            reward_unclaimed=farm.reward_unclaimed - reward,
        )
        self._farms[key] = updated
        return updated

    def end_farm(self, key: FarmKey, caller: Account, *, now: int) -> int:
        """
        End the Farm and return the refund owed to the sponsor.

        The sponsor may end it as soon as ``now > end_time``; anyone else has
        to wait out ``claim_deadline`` as well.

        Raises:
            UnknownFarmError, AlreadyEndedError, NotYetEndableError
        """
        farm = self.get(key)
        if farm.ended:
            raise AlreadyEndedError(f"farm already ended: {key}")
        if now <= key.end_time:
            raise NotYetEndableError(f"farm still running until {key.end_time} (now={now})")
        if caller != farm.sponsor and now <= key.end_time + self._config.claim_deadline:
            raise NotYetEndableError(
                f"only the sponsor may end the farm before {key.end_time + self._config.claim_deadline}"
            )

        refund = farm.reward_unclaimed
        self._farms[key] = replace(farm, ended=True, refund=refund, reward_unclaimed=0)
        return refund

    def farms(self) -> List[Farm]:
        """All farms, sorted by key."""
        return [self._farms[k] for k in sorted(self._farms)]

    def snapshot(self) -> Dict[FarmKey, Farm]:
        return dict(self._farms)

    def restore(self, snap: Dict[FarmKey, Farm]) -> None:
        self._farms = dict(snap)

    def __len__(self) -> int:
        return len(self._farms)

    def __repr__(self) -> str:
        return f"FarmRegistry({len(self._farms)} farms)"
