"""
Deterministic state root hashing (v1) and farm ids.

Intended for:
- replay checks (the same ordered op log must reproduce the same root),
- external indexers, which key farms by `compute_farm_id`.

Every section is sorted before encoding, so the root does not depend on
insertion order of the underlying tables.
"""

from __future__ import annotations

from typing import Iterable

from ..core.types import Deposit, Farm, FarmKey, RangeId, Stake
from .balances import BalanceTable
from .canonical import (
    domain_sep_bytes,
    encode_bytes,
    encode_str,
    encode_svarint,
    encode_uvarint,
    sha256_hex,
)


STATE_ROOT_VERSION = 1
FARM_ID_VERSION = 1


def _encode_range(range_id: RangeId) -> bytes:
    return encode_str(range_id.pool) + encode_svarint(range_id.tick_lower) + encode_svarint(range_id.tick_upper)


def _encode_farm_key(key: FarmKey) -> bytes:
    return _encode_range(key.range_id) + encode_uvarint(key.start_time) + encode_uvarint(key.end_time)


def compute_farm_id(key: FarmKey) -> str:
    """0x-prefixed sha256 identifying a farm key."""
    return sha256_hex(domain_sep_bytes("farm_id", version=FARM_ID_VERSION) + _encode_farm_key(key))


def _encode_farms_section(farms: Iterable[Farm]) -> bytes:
    entries = sorted(farms, key=lambda f: f.key)
    out = bytearray(encode_uvarint(len(entries)))
    for farm in entries:
        out += _encode_farm_key(farm.key)
        out += encode_str(farm.sponsor)
        out += encode_uvarint(farm.total_reward)
        out += encode_uvarint(farm.reward_unclaimed)
        out += encode_uvarint(farm.seconds_claimed_x128)
        out += encode_uvarint(1 if farm.ended else 0)
        out += encode_uvarint(farm.refund)
    return bytes(out)


def _encode_deposits_section(deposits: Iterable[Deposit]) -> bytes:
    entries = sorted(deposits, key=lambda d: d.token_id)
    out = bytearray(encode_uvarint(len(entries)))
    for deposit in entries:
        out += encode_uvarint(deposit.token_id)
        out += encode_str(deposit.owner)
        out += encode_uvarint(deposit.liquidity)
        out += _encode_range(deposit.range_id)
    return bytes(out)


def _encode_stakes_section(stakes: Iterable[Stake]) -> bytes:
    entries = sorted(stakes, key=lambda s: s.stake_id)
    seen: set[int] = set()
    out = bytearray(encode_uvarint(len(entries)))
    for stake in entries:
        if stake.stake_id in seen:
            raise ValueError(f"duplicate stake_id: {stake.stake_id}")
        seen.add(stake.stake_id)
        out += encode_uvarint(stake.stake_id)
        out += encode_uvarint(stake.token_id)
        out += _encode_farm_key(stake.farm_key)
        out += encode_str(stake.owner_at_open)
        out += encode_uvarint(stake.liquidity)
        out += encode_uvarint(stake.snapshot_at_stake_x128)
        out += encode_uvarint(stake.opened_at)
        if stake.is_open:
            out += encode_uvarint(0)
        else:
            out += encode_uvarint(1)
            out += encode_uvarint(stake.snapshot_at_unstake_x128 or 0)
            out += encode_uvarint(stake.seconds_x128 or 0)
            out += encode_uvarint(stake.reward or 0)
            out += encode_uvarint(stake.closed_at or 0)
    return bytes(out)


def _encode_accrued_section(accrued: BalanceTable) -> bytes:
    entries = accrued.items()
    out = bytearray(encode_uvarint(len(entries)))
    for (account, asset), amount in entries:
        out += encode_str(account)
        out += encode_str(asset)
        out += encode_uvarint(amount)
    return bytes(out)


def compute_state_root(
    *,
    farms: Iterable[Farm],
    deposits: Iterable[Deposit],
    stakes: Iterable[Stake],
    accrued: BalanceTable,
) -> str:
    """
    Compute a deterministic state root hash for the farming engine.

    `stakes` is the full stake history (open and closed).

    Returns a 0x-prefixed sha256 digest.
    """
    if not isinstance(accrued, BalanceTable):
        raise TypeError("accrued must be a BalanceTable")

    payload = (
        domain_sep_bytes("state_root", version=STATE_ROOT_VERSION)
        + b"FRM"
        + encode_bytes(_encode_farms_section(farms))
        + b"DEP"
        + encode_bytes(_encode_deposits_section(deposits))
        + b"STK"
        + encode_bytes(_encode_stakes_section(stakes))
        + b"ACC"
        + encode_bytes(_encode_accrued_section(accrued))
    )
    return sha256_hex(payload)
