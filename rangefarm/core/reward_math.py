"""Pure arithmetic for liquidity-seconds accounting.

Every function is stateless and operates on plain Python ints.

Accumulators are Q128 fixed point: ``seconds * 2**128 / liquidity``. A stake's
liquidity-seconds is the accumulator delta times its liquidity, so it is
"seconds" in Q128 as well, and a full window of ``d`` seconds is
``d * Q128``.

Rounding is floor everywhere (Python ``//``). Widths are checked explicitly:
results that would not fit 256 bits raise instead of wrapping.
"""

from __future__ import annotations

from .errors import ArithmeticOverflowError, DivideByZeroError, OracleError

# Domain constants
Q128: int = 1 << 128
UINT64_MAX: int = (1 << 64) - 1
UINT128_MAX: int = (1 << 128) - 1
UINT256_MAX: int = (1 << 256) - 1


def _require_uint(value: int, max_value: int, *, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > max_value:
        raise ArithmeticOverflowError(f"{name} out of range: {value}")


def seconds_x128(seconds: int) -> int:
    """Lift whole seconds into Q128."""
    _require_uint(seconds, UINT64_MAX, name="seconds")
    return seconds * Q128


def q128_to_seconds(value_x128: int) -> int:
    """Whole seconds in a Q128 value (floor). Display only."""
    _require_uint(value_x128, UINT256_MAX, name="value_x128")
    return value_x128 >> 128


def liquidity_seconds(acc_start_x128: int, acc_end_x128: int, liquidity: int) -> int:
    """Liquidity-seconds (Q128) earned by ``liquidity`` between two snapshots.

    ``(acc_end - acc_start) * liquidity``. The oracle is monotonic, so a
    negative delta is a contract violation rather than a wrap-around.
    """
    _require_uint(acc_start_x128, UINT256_MAX, name="acc_start_x128")
    _require_uint(acc_end_x128, UINT256_MAX, name="acc_end_x128")
    _require_uint(liquidity, UINT128_MAX, name="liquidity")
    if acc_end_x128 < acc_start_x128:
        raise OracleError(
            f"accumulator decreased: {acc_start_x128} -> {acc_end_x128}"
        )
    product = (acc_end_x128 - acc_start_x128) * liquidity
    if product > UINT256_MAX:
        raise ArithmeticOverflowError("liquidity-seconds exceed 256 bits")
    return product


def reward_share(seconds_x128: int, total_seconds_x128: int, total_reward: int) -> int:
    """``floor(total_reward * seconds / total_seconds)``.

    The product is taken at full (512-bit) precision before dividing, so only
    the final floor loses value, and that remainder stays with the caller.

    A zero denominator is fine when nothing is being claimed (returns 0). A
    nonzero claim against a zero denominator, or a claim larger than the
    denominator, is a parameter combination that must be rejected.
    """
    _require_uint(seconds_x128, UINT256_MAX, name="seconds_x128")
    _require_uint(total_seconds_x128, UINT256_MAX, name="total_seconds_x128")
    _require_uint(total_reward, UINT256_MAX, name="total_reward")
    if total_seconds_x128 == 0:
        if seconds_x128 == 0:
            return 0
        raise DivideByZeroError("nonzero liquidity-seconds against an empty denominator")
    if seconds_x128 > total_seconds_x128:
        raise ArithmeticOverflowError(
            f"share exceeds denominator: {seconds_x128} > {total_seconds_x128}"
        )
    return (total_reward * seconds_x128) // total_seconds_x128


def window_seconds_x128(start_time: int, end_time: int) -> int:
    """Full farm window in Q128 seconds."""
    if end_time < start_time:
        raise ArithmeticOverflowError(f"inverted window: {start_time} > {end_time}")
    return seconds_x128(end_time - start_time)
