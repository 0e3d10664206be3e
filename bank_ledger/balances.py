"""
Balance Store Module

Maps user ids to balances. A missing entry means a zero balance, and
entries are only created when money first arrives.
"""

import threading
from typing import Dict, List, Tuple


class BalanceStore:
    """In-memory balance store with lazy allocation"""

    def __init__(self):
        self._balances: Dict[int, float] = {}
        self._lock = threading.RLock()

    def get(self, user_id: int) -> float:
        """Current balance, 0.0 if the account has no entry"""
        return self._balances.get(user_id, 0.0)

    def has_entry(self, user_id: int) -> bool:
        return user_id in self._balances

    def set(self, user_id: int, amount: float) -> None:
        with self._lock:
            self._balances[user_id] = amount

    def remove(self, user_id: int) -> bool:
        """Remove an entry; returns False if there was none"""
        with self._lock:
            return self._balances.pop(user_id, None) is not None

    def items(self) -> List[Tuple[int, float]]:
        """Snapshot of (user_id, balance) pairs in insertion order"""
        with self._lock:
            return list(self._balances.items())

    def total(self) -> float:
        return sum(self._balances.values())

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._balances

    def __len__(self) -> int:
        return len(self._balances)
