"""Invariant checkers for the farming ledger.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass). The engine runs them on
the post-state of every operation and rolls back on any violation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .types import Deposit, Farm, Stake


@dataclass(frozen=True)
class LedgerView:
    """Read-only snapshot of everything the invariants look at."""

    farms: tuple[Farm, ...]
    deposits: tuple[Deposit, ...]
    stakes: tuple[Stake, ...]  # full history, open and closed
    accrued_total: int
    # Reward-token balance of the custody account; None when unknown.
    custody_balance: Optional[int] = None


def inv_farm_window_ordered(v: LedgerView) -> bool:
    return all(f.key.start_time < f.key.end_time for f in v.farms)


def inv_farm_escrow_bounded(v: LedgerView) -> bool:
    for f in v.farms:
        if not (0 <= f.reward_unclaimed <= f.total_reward):
            return False
        if not (0 <= f.refund <= f.total_reward):
            return False
        if f.reward_credited < 0:
            return False
    return True


def inv_ended_farm_drained(v: LedgerView) -> bool:
    for f in v.farms:
        if f.ended and f.reward_unclaimed != 0:
            return False
        if not f.ended and f.refund != 0:
            return False
    return True


def inv_credits_match_closed_stakes(v: LedgerView) -> bool:
    """Per farm: credited reward and the seconds tally equal the closed stakes' sums."""
    reward_by_farm: dict = {}
    seconds_by_farm: dict = {}
    for s in v.stakes:
        if s.is_open:
            continue
        reward_by_farm[s.farm_key] = reward_by_farm.get(s.farm_key, 0) + (s.reward or 0)
        seconds_by_farm[s.farm_key] = seconds_by_farm.get(s.farm_key, 0) + (s.seconds_x128 or 0)
    for f in v.farms:
        if reward_by_farm.get(f.key, 0) != f.reward_credited:
            return False
        if seconds_by_farm.get(f.key, 0) != f.seconds_claimed_x128:
            return False
    return True


def inv_open_stakes_have_deposit(v: LedgerView) -> bool:
    deposited = {d.token_id for d in v.deposits}
    return all(s.token_id in deposited for s in v.stakes if s.is_open)


def inv_one_open_stake_per_pair(v: LedgerView) -> bool:
    pairs = [(s.token_id, s.farm_key) for s in v.stakes if s.is_open]
    return len(pairs) == len(set(pairs))


def inv_open_stakes_within_window(v: LedgerView) -> bool:
    return all(
        s.farm_key.start_time <= s.opened_at <= s.farm_key.end_time
        for s in v.stakes
    )


def inv_custody_covers_liabilities(v: LedgerView) -> bool:
    if v.custody_balance is None:
        return True
    owed = v.accrued_total + sum(f.reward_unclaimed for f in v.farms)
    return v.custody_balance >= owed


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[LedgerView], bool]] = {
    "inv_farm_window_ordered": inv_farm_window_ordered,
    "inv_farm_escrow_bounded": inv_farm_escrow_bounded,
    "inv_ended_farm_drained": inv_ended_farm_drained,
    "inv_credits_match_closed_stakes": inv_credits_match_closed_stakes,
    "inv_open_stakes_have_deposit": inv_open_stakes_have_deposit,
    "inv_one_open_stake_per_pair": inv_one_open_stake_per_pair,
    "inv_open_stakes_within_window": inv_open_stakes_within_window,
    "inv_custody_covers_liabilities": inv_custody_covers_liabilities,
}


def check_all(view: LedgerView) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(view)
    ]
