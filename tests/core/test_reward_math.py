"""Tests for rangefarm/core/reward_math.py: pure fixed-point arithmetic."""

import pytest

from rangefarm.core.errors import ArithmeticOverflowError, DivideByZeroError, OracleError
from rangefarm.core.reward_math import (
    Q128,
    UINT128_MAX,
    UINT256_MAX,
    liquidity_seconds,
    q128_to_seconds,
    reward_share,
    seconds_x128,
    window_seconds_x128,
)


# ---------------------------------------------------------------------------
# Q128 lifting
# ---------------------------------------------------------------------------

class TestSecondsX128:
    def test_lift(self):
        assert seconds_x128(3) == 3 * Q128

    def test_round_trip_floor(self):
        assert q128_to_seconds(seconds_x128(42) + Q128 - 1) == 42

    def test_negative_rejected(self):
        with pytest.raises(ArithmeticOverflowError):
            seconds_x128(-1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            seconds_x128(True)

    def test_window(self):
        assert window_seconds_x128(100, 160) == 60 * Q128

    def test_inverted_window(self):
        with pytest.raises(ArithmeticOverflowError):
            window_seconds_x128(10, 5)


# ---------------------------------------------------------------------------
# liquidity_seconds
# ---------------------------------------------------------------------------

class TestLiquiditySeconds:
    def test_delta_times_liquidity(self):
        assert liquidity_seconds(10, 25, 4) == 60

    def test_zero_delta(self):
        assert liquidity_seconds(7, 7, UINT128_MAX) == 0

    def test_zero_liquidity(self):
        assert liquidity_seconds(0, 1000, 0) == 0

    def test_full_window_single_lp(self):
        # One LP with all active liquidity for d seconds earns exactly d seconds.
        liq = 1 << 60
        d = 3600
        acc = d * Q128 // liq
        assert liquidity_seconds(0, acc, liq) == d * Q128

    def test_decreasing_accumulator_is_oracle_error(self):
        with pytest.raises(OracleError):
            liquidity_seconds(10, 9, 1)

    def test_overflow_rejected(self):
        with pytest.raises(ArithmeticOverflowError):
            liquidity_seconds(0, UINT256_MAX, 2)

    def test_liquidity_wider_than_128_bits(self):
        with pytest.raises(ArithmeticOverflowError):
            liquidity_seconds(0, 1, UINT128_MAX + 1)


# ---------------------------------------------------------------------------
# reward_share
# ---------------------------------------------------------------------------

class TestRewardShare:
    def test_proportional(self):
        assert reward_share(1, 3, 3000) == 1000

    def test_floor(self):
        assert reward_share(1, 3, 1000) == 333

    def test_whole(self):
        assert reward_share(5, 5, 77) == 77

    def test_zero_claim(self):
        assert reward_share(0, 10, 1000) == 0

    def test_zero_over_zero_is_zero(self):
        assert reward_share(0, 0, 1000) == 0

    def test_nonzero_over_zero_raises(self):
        with pytest.raises(DivideByZeroError):
            reward_share(1, 0, 1000)

    def test_claim_above_denominator_raises(self):
        with pytest.raises(ArithmeticOverflowError):
            reward_share(11, 10, 1000)

    def test_full_precision_product(self):
        # reward * seconds exceeds 256 bits; only the final floor loses value.
        seconds = UINT256_MAX // 3
        total = UINT256_MAX
        reward = UINT256_MAX
        assert reward_share(seconds, total, reward) == (reward * seconds) // total

    def test_two_closes_against_same_denominator_are_proportional(self):
        total, reward = 1_000_003, 10**18
        a, b = 12_345, 3 * 12_345
        ra, rb = reward_share(a, total, reward), reward_share(b, total, reward)
        # floor(3x) - 3 floor(x) is in [0, 3)
        assert 0 <= rb - 3 * ra < 3
