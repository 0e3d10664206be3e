"""
Ledger Error Module

Flat error taxonomy for the ledger. Every failure is a local validation
failure raised before any state is mutated, so callers can catch, report
and retry with corrected input.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of ledger failures"""
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_AMOUNT = "invalid_amount"
    LOGIN_FAILED = "login_failed"
    USER_NOT_FOUND = "user_not_found"
    AMOUNT_TOO_SMALL = "amount_too_small"
    INVALID_USER_ID = "invalid_user_id"
    INVALID_TAX_RATE = "invalid_tax_rate"
    INVALID_INTEREST_RATE = "invalid_interest_rate"
    USER_ALREADY_EXISTS = "user_already_exists"


class BankingError(ValueError):
    """Base exception for all ledger errors."""

    kind: ErrorKind
    default_message = "Banking operation failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(BankingError):
    """Raised when the caller's role does not permit the operation."""
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Current user is not authorized to do this operation."


class InsufficientBalance(BankingError):
    """Raised when an account holds less than the requested amount."""
    kind = ErrorKind.INSUFFICIENT_BALANCE
    default_message = "User does not have enough balance."


class InvalidAmount(BankingError):
    """Raised for zero or negative amounts."""
    kind = ErrorKind.INVALID_AMOUNT
    default_message = "The amount given is not valid."


class LoginFailed(BankingError):
    """Raised when a username/password pair matches no user."""
    kind = ErrorKind.LOGIN_FAILED
    default_message = "Login failed! The username or password is not correct."


class UserNotFound(BankingError):
    """Raised when a credential does not resolve to a user."""
    kind = ErrorKind.USER_NOT_FOUND
    default_message = "User does not exist."


class AmountTooSmall(BankingError):
    """Raised when an amount is below the existential deposit."""
    kind = ErrorKind.AMOUNT_TOO_SMALL
    default_message = "The amount given is too small."


class InvalidUserId(BankingError):
    """Raised when a target id is unknown or not a customer."""
    kind = ErrorKind.INVALID_USER_ID
    default_message = "User ID does not exist."


class InvalidTaxRate(BankingError):
    kind = ErrorKind.INVALID_TAX_RATE
    default_message = "Tax rate must be between 0 and 1."


class InvalidInterestRate(BankingError):
    kind = ErrorKind.INVALID_INTEREST_RATE
    default_message = "Interest rate cannot be negative."


class UserAlreadyExists(BankingError):
    kind = ErrorKind.USER_ALREADY_EXISTS
    default_message = "This user already exists."
