"""
Bank Ledger

A single-process ledger with role-gated operations, an existential-deposit
balance policy and an append-only, hash-chained event log.
"""

from .directory import Role, User
from .errors import BankingError, ErrorKind
from .ledger import Ledger

__version__ = "1.0.0"

__all__ = ["Ledger", "Role", "User", "BankingError", "ErrorKind"]
