"""
State tables and deterministic encodings
"""

from .balances import BalanceTable
from .state_root import compute_farm_id, compute_state_root

__all__ = [
    "BalanceTable",
    "compute_farm_id",
    "compute_state_root",
]
