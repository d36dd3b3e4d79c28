"""Exception types for the farming engine.

Every failure surfaces as a ``FarmingError`` subclass. ``code`` is the stable
taxonomy name (what an indexer or the op-log replay records); the class name is
the Python spelling of the same thing.
"""

from __future__ import annotations


class FarmingError(Exception):
    """Base class. The failed operation has been fully rolled back."""

    code: str = "FarmingError"


class InvalidWindowError(FarmingError):
    """Farm window is empty, starts in the past, or exceeds configured bounds."""

    code = "InvalidWindow"


class DuplicateFarmError(FarmingError):
    """A non-ended Farm with the same key already exists."""

    code = "DuplicateFarm"


class InsufficientFundsError(FarmingError):
    """Sponsor (or custody) cannot cover a reward-token transfer."""

    code = "InsufficientFunds"


class NotYetEndableError(FarmingError):
    code = "NotYetEndable"


class AlreadyEndedError(FarmingError):
    code = "AlreadyEnded"


class NotOwnerError(FarmingError):
    code = "NotOwner"


class RangeMismatchError(FarmingError):
    """Deposit's sub-range is not covered by the Farm's range."""

    code = "RangeMismatch"


class FarmNotActiveError(FarmingError):
    """Stake attempted outside ``[start_time, end_time]`` or on an ended Farm."""

    code = "FarmNotActive"


class AlreadyStakedError(FarmingError):
    code = "AlreadyStaked"


class NoOpenStakeError(FarmingError):
    code = "NoOpenStake"


class StakesStillOpenError(FarmingError):
    code = "StakesStillOpen"


class InsufficientAccruedError(FarmingError):
    code = "InsufficientAccrued"


class ArithmeticOverflowError(FarmingError):
    """A fixed-point result does not fit its width. Never truncated."""

    code = "ArithmeticOverflow"


class DivideByZeroError(FarmingError):
    code = "DivideByZero"


class UnknownFarmError(FarmingError):
    code = "UnknownFarm"


class NotDepositedError(FarmingError):
    code = "NotDeposited"


class AlreadyDepositedError(FarmingError):
    code = "AlreadyDeposited"


class InvalidParameterError(FarmingError):
    """Parameter outside its domain (negative, zero where positive required, too wide)."""

    code = "InvalidParameter"


class OracleError(FarmingError):
    """The accumulator oracle broke its contract (future timestamp, non-monotonic)."""

    code = "OracleError"


class InvariantViolationError(FarmingError):
    """A committed state would violate one or more ledger invariants."""

    code = "InvariantViolation"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
