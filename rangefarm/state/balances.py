"""
Per-account fungible balances with deterministic ordering.

Implements BalanceTable[Account, AssetId] -> Amount. Used for AccruedReward
(what each account may harvest) and by the in-memory reward token.
"""

from typing import Dict, Tuple


# Type aliases
Account = str
AssetId = str
Amount = int  # Non-negative integer (arbitrary precision)


class BalanceTable:
    """
    Balance table mapping (account, asset) -> amount.

    Zero balances are dropped so two tables holding the same balances compare
    equal regardless of history. Callers must not rely on dict iteration order;
    `items()` returns entries sorted by key.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, AssetId], Amount] = {}

    def get(self, account: Account, asset: AssetId) -> Amount:
        """Balance for (account, asset); 0 if absent."""
        return self._balances.get((account, asset), 0)

    def set(self, account: Account, asset: AssetId, amount: Amount) -> None:
        """
        Set the balance for (account, asset).

        Raises:
            ValueError: If amount is negative
        """
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TypeError(f"amount must be an int: {amount!r}")
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((account, asset), None)
        else:
            self._balances[(account, asset)] = amount

    def credit(self, account: Account, asset: AssetId, delta: Amount) -> Amount:
        """Add a non-negative amount; returns the new balance."""
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        new_balance = self.get(account, asset) + delta
        self.set(account, asset, new_balance)
        return new_balance

    def debit(self, account: Account, asset: AssetId, delta: Amount) -> Amount:
        """
        Subtract a non-negative amount; returns the new balance.

        Raises:
            ValueError: If delta is negative or the balance is insufficient
        """
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        current = self.get(account, asset)
        if delta > current:
            raise ValueError(f"Insufficient balance: {current} - {delta} < 0")
        self.set(account, asset, current - delta)
        return current - delta

    def items(self) -> list[tuple[tuple[Account, AssetId], Amount]]:
        """All non-zero balances, sorted by (account, asset)."""
        return sorted(self._balances.items())

    def total(self, asset: AssetId) -> Amount:
        """Sum of all balances of one asset."""
        return sum(amount for (_, a), amount in self._balances.items() if a == asset)

    def snapshot(self) -> Dict[Tuple[Account, AssetId], Amount]:
        return dict(self._balances)

    def restore(self, snap: Dict[Tuple[Account, AssetId], Amount]) -> None:
        self._balances = dict(snap)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BalanceTable):
            return NotImplemented
        return self._balances == other._balances

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
