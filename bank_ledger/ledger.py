"""
Ledger Engine

Owns the user directory, the balance store, the event log and the
ledger-wide rates, and applies every role-gated state transition:
deposits, withdrawals, transfers, interest and tax.

Each operation validates all of its preconditions before touching state,
so a raised BankingError always leaves balances and the event log exactly
as they were. Every completed transition appends to the event log.
"""

import functools
import logging
import sys
import threading
from typing import List, Optional, Tuple

from .balances import BalanceStore
from .config import LedgerConfig, get_config
from .directory import Credential, Directory, Role, User
from .errors import (
    AmountTooSmall, BankingError, InsufficientBalance, InvalidAmount,
    InvalidInterestRate, InvalidTaxRate, InvalidUserId, Unauthorized,
)
from .events import (
    AccountReaped, Deposit, Event, EventLog, Interest, InterestRateChanged,
    Tax, TaxRateChanged, Transfer, Withdrawal,
)
from .logging_config import log_action
from .reporting import ReportEntry


INTEREST_RATE = 0.01
TAX_RATE = 0.02
EXISTENTIAL_DEPOSIT = 5.0

STAFF_ROLES = (Role.MANAGER, Role.AUDITOR)


def ledger_operation(action: str):
    """
    Run a ledger method under the ledger lock and log rejections

    Events recorded by the method reach subscribers only after the outermost
    operation has finished and released the lock.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            pending: List[Event] = []
            try:
                with self._lock:
                    self._depth += 1
                    try:
                        return func(self, *args, **kwargs)
                    except BankingError as e:
                        log_action(
                            self.logger, "warning", f"{action} rejected: {e.message}",
                            action=action, extra={'error': e.kind.value}
                        )
                        raise
                    finally:
                        self._depth -= 1
                        if not self._depth:
                            pending, self._pending = self._pending, []
            finally:
                if pending:
                    self.event_log.publish(pending)
        return wrapper
    return decorator


def _validate_amount(amount: float) -> None:
    # Written as a negation so NaN is rejected too
    if not amount > 0:
        raise InvalidAmount()


def _validate_interest_rate(rate: float) -> None:
    if not rate >= 0:
        raise InvalidInterestRate()


def _validate_tax_rate(rate: float) -> None:
    if not 0 <= rate <= 1:
        raise InvalidTaxRate()


class Ledger:
    """
    Single-process ledger aggregate

    The directory, balance store and event log are owned exclusively by the
    ledger and change only through its operations. All operations share one
    re-entrant lock, so the aggregate is updated as one atomic unit per call.
    """

    def __init__(
        self,
        interest_rate: float = INTEREST_RATE,
        tax_rate: float = TAX_RATE,
        existential_deposit: float = EXISTENTIAL_DEPOSIT
    ):
        _validate_interest_rate(interest_rate)
        _validate_tax_rate(tax_rate)
        if not existential_deposit >= 0:
            raise ValueError("Existential deposit cannot be negative")

        self.directory = Directory()
        self.balances = BalanceStore()
        self.event_log = EventLog()
        self._interest_rate = interest_rate
        self._tax_rate = tax_rate
        self._existential_deposit = existential_deposit
        self._lock = threading.RLock()
        self._depth = 0
        self._pending: List[Event] = []
        self.logger = logging.getLogger("bank_ledger.ledger")

    @classmethod
    def from_config(cls, cfg: Optional[LedgerConfig] = None) -> 'Ledger':
        """Create a ledger using rates from LedgerConfig (environment by default)"""
        cfg = cfg or get_config()
        return cls(
            interest_rate=cfg.interest_rate,
            tax_rate=cfg.tax_rate,
            existential_deposit=cfg.existential_deposit
        )

    @property
    def interest_rate(self) -> float:
        return self._interest_rate

    @property
    def tax_rate(self) -> float:
        return self._tax_rate

    @property
    def existential_deposit(self) -> float:
        return self._existential_deposit

    # Authorization

    def _assert_role(self, credential: Credential, *roles: Role) -> User:
        """
        Resolve the caller and check their role

        Raises:
            UserNotFound: If the credential is unknown
            Unauthorized: If the user's role is not one of `roles`
        """
        user = self.directory.resolve(credential)
        if user.role not in roles:
            raise Unauthorized()
        return user

    def _record(self, event: Event) -> None:
        self.event_log.record(event)
        self._pending.append(event)

    def _settle(self, user_id: int, new_balance: float) -> float:
        """
        Store a reduced balance, reaping the account below the existential deposit

        Returns:
            The balance left in the store (0.0 once reaped)
        """
        if new_balance >= self._existential_deposit:
            self.balances.set(user_id, new_balance)
            return new_balance

        self.balances.remove(user_id)
        self._record(AccountReaped(id=user_id, dust=new_balance))
        log_action(
            self.logger, "info", f"Account {user_id} reaped",
            user_id=user_id, action="reap", resource="balance",
            extra={'dust': new_balance}
        )
        return 0.0

    def _debit_balance(self, user_id: int, amount: float) -> float:
        """Balance after taking `amount`, without mutating anything"""
        if not self.balances.has_entry(user_id):
            raise InsufficientBalance()
        balance = self.balances.get(user_id)
        if balance < amount:
            raise InsufficientBalance()
        return balance - amount

    # Directory & Authentication

    @ledger_operation("register")
    def register(self, username: str, password: str, role: Role) -> User:
        """
        Register a new user

        Raises:
            UserAlreadyExists: If the username is taken
        """
        user = self.directory.register(username, password, role)
        log_action(
            self.logger, "info", f"Registered user {user.username}",
            user_id=user.id, action="register", resource="user",
            extra={'role': role.value}
        )
        return user

    def has_username(self, username: str) -> bool:
        return self.directory.has_username(username)

    @ledger_operation("login")
    def login(self, username: str, password: str) -> Tuple[Credential, Role]:
        """
        Log in and return the session credential and role

        Raises:
            LoginFailed: If the username/password pair matches no user
        """
        credential, role = self.directory.login(username, password)
        log_action(self.logger, "info", "Login succeeded",
                   action="login", resource="session", extra={'role': role.value})
        return credential, role

    @ledger_operation("change_password")
    def change_password(self, credential: Credential, new_password: str) -> Credential:
        """
        Change the caller's password

        The given credential is invalid afterwards; the caller must end its
        session or continue with the returned credential.

        Raises:
            UserNotFound: If the credential is unknown
        """
        user = self.directory.resolve(credential)
        new_credential = self.directory.change_password(credential, new_password)
        log_action(self.logger, "info", "Password changed",
                   user_id=user.id, action="change_password", resource="user")
        return new_credential

    # Balance Transitions

    @ledger_operation("deposit")
    def deposit(self, credential: Credential, amount: float) -> float:
        """
        Deposit `amount` into the caller's account

        A first deposit must be at least the existential deposit.

        Returns:
            New balance

        Raises:
            InvalidAmount: If amount is not positive
            AmountTooSmall: If the account is empty and amount is below ED
        """
        _validate_amount(amount)
        user = self._assert_role(credential, Role.CUSTOMER)

        if self.balances.has_entry(user.id):
            new_balance = self.balances.get(user.id) + amount
        elif amount < self._existential_deposit:
            raise AmountTooSmall()
        else:
            new_balance = amount

        self.balances.set(user.id, new_balance)
        self._record(Deposit(id=user.id, amount=amount))
        log_action(
            self.logger, "info", f"Deposited {amount}",
            user_id=user.id, action="deposit", resource="balance",
            extra={'balance': new_balance}
        )
        return new_balance

    @ledger_operation("withdraw")
    def withdraw(self, credential: Credential, amount: float) -> float:
        """
        Withdraw `amount` from the caller's account

        The Withdrawal event is always recorded; if the remaining balance
        falls below ED the account is reaped right after.

        Returns:
            Balance left in the store (0.0 if the account was reaped)

        Raises:
            InvalidAmount: If amount is not positive
            InsufficientBalance: If the account holds less than amount
        """
        _validate_amount(amount)
        user = self._assert_role(credential, Role.CUSTOMER)
        new_balance = self._debit_balance(user.id, amount)

        self._record(Withdrawal(id=user.id, amount=amount))
        remaining = self._settle(user.id, new_balance)
        log_action(
            self.logger, "info", f"Withdrew {amount}",
            user_id=user.id, action="withdraw", resource="balance",
            extra={'balance': remaining}
        )
        return remaining

    @ledger_operation("transfer")
    def transfer(self, credential: Credential, amount: float, target_id: int) -> None:
        """
        Transfer `amount` from the caller to another customer

        A transfer to oneself succeeds without any effect, whatever the
        amount. The sender may be reaped; the recipient is credited even if
        it had no entry before.

        Raises:
            InvalidAmount: If amount is not positive
            AmountTooSmall: If amount is below ED
            InvalidUserId: If the target is not an existing customer
            InsufficientBalance: If the sender holds less than amount
        """
        user = self._assert_role(credential, Role.CUSTOMER)
        if target_id == user.id:
            return

        _validate_amount(amount)
        if amount < self._existential_deposit:
            raise AmountTooSmall()
        if self.directory.find_customer(target_id) is None:
            raise InvalidUserId()
        new_balance = self._debit_balance(user.id, amount)

        self._settle(user.id, new_balance)
        self.balances.set(target_id, self.balances.get(target_id) + amount)
        self._record(Transfer(id=user.id, to_id=target_id, amount=amount))
        log_action(
            self.logger, "info", f"Transferred {amount} to {target_id}",
            user_id=user.id, action="transfer", resource="balance",
            extra={'to_id': target_id}
        )

    @ledger_operation("check_balance")
    def check_balance(self, credential: Credential) -> float:
        """Caller's balance, 0.0 if the account has no entry"""
        user = self._assert_role(credential, Role.CUSTOMER)
        return self.balances.get(user.id)

    # Rates & Bulk Operations

    @ledger_operation("set_interest_rate")
    def set_interest_rate(self, credential: Credential, rate: float) -> None:
        """
        Set the interest rate used by pay_interest (manager only)

        Raises:
            InvalidInterestRate: If rate is negative
        """
        _validate_interest_rate(rate)
        user = self._assert_role(credential, Role.MANAGER)

        self._interest_rate = rate
        self._record(InterestRateChanged(id=user.id, interest_rate=rate))
        log_action(self.logger, "info", f"Interest rate set to {rate}",
                   user_id=user.id, action="set_interest_rate", resource="rates")

    @ledger_operation("set_tax_rate")
    def set_tax_rate(self, credential: Credential, rate: float) -> None:
        """
        Set the tax rate used by take_tax (auditor only)

        Raises:
            InvalidTaxRate: If rate is outside [0, 1]
        """
        _validate_tax_rate(rate)
        user = self._assert_role(credential, Role.AUDITOR)

        self._tax_rate = rate
        self._record(TaxRateChanged(id=user.id, tax_rate=rate))
        log_action(self.logger, "info", f"Tax rate set to {rate}",
                   user_id=user.id, action="set_tax_rate", resource="rates")

    @ledger_operation("pay_interest")
    def pay_interest(self, credential: Credential) -> int:
        """
        Grow every balance by the interest rate (manager only)

        Balances saturate at the largest finite float instead of
        overflowing to infinity. One Interest event is recorded per account.

        Returns:
            Number of accounts paid
        """
        user = self._assert_role(credential, Role.MANAGER)
        growth = 1 + self._interest_rate
        ceiling = sys.float_info.max

        accounts = self.balances.items()
        for user_id, balance in accounts:
            if balance > ceiling / growth:
                new_balance = ceiling
            else:
                new_balance = balance * growth
            self.balances.set(user_id, new_balance)
            self._record(Interest(id=user_id, interest=new_balance - balance))

        log_action(
            self.logger, "info", f"Paid interest to {len(accounts)} accounts",
            user_id=user.id, action="pay_interest", resource="balance",
            extra={'rate': self._interest_rate}
        )
        return len(accounts)

    @ledger_operation("take_tax")
    def take_tax(self, credential: Credential) -> int:
        """
        Take tax from every balance (auditor only)

        A Tax event is recorded for every account, followed by an
        AccountReaped event for accounts left below ED.

        Returns:
            Number of accounts taxed
        """
        user = self._assert_role(credential, Role.AUDITOR)
        rate = self._tax_rate

        accounts = self.balances.items()
        for user_id, balance in accounts:
            tax = balance * rate
            self._record(Tax(id=user_id, tax=tax))
            self._settle(user_id, balance * (1 - rate))

        log_action(
            self.logger, "info", f"Took tax from {len(accounts)} accounts",
            user_id=user.id, action="take_tax", resource="balance",
            extra={'rate': rate}
        )
        return len(accounts)

    # Queries & Reporting

    @ledger_operation("report")
    def report(self, credential: Credential) -> List[ReportEntry]:
        """
        List every user; customers include their current balance

        Requires manager or auditor role.
        """
        self._assert_role(credential, *STAFF_ROLES)
        return [
            ReportEntry(
                user_id=u.id,
                username=u.username,
                role=u.role,
                balance=self.balances.get(u.id) if u.role == Role.CUSTOMER else None
            )
            for u in self.directory.users()
        ]

    @ledger_operation("events_for_self")
    def events_for_self(self, credential: Credential) -> List[Event]:
        """Events in the caller's own history, in log order (customers only)"""
        user = self._assert_role(credential, Role.CUSTOMER)
        return self.event_log.for_user(user.id)

    @ledger_operation("events_for_user")
    def events_for_user(self, credential: Credential, role: Role, target_id: int) -> List[Event]:
        """
        Events in a customer's history, for managers and auditors

        Args:
            credential: Caller's credential
            role: Role the caller is acting under; must match the caller
            target_id: Customer whose history is requested

        Raises:
            Unauthorized: If role is CUSTOMER or does not match the caller
            InvalidUserId: If target_id is not an existing customer
        """
        if role == Role.CUSTOMER:
            raise Unauthorized()
        self._assert_role(credential, role)
        if self.directory.find_customer(target_id) is None:
            raise InvalidUserId()
        return self.event_log.for_user(target_id)

    @ledger_operation("all_events")
    def all_events(self, credential: Credential, role: Role) -> List[Event]:
        """The whole event log in insertion order, for managers and auditors"""
        if role == Role.CUSTOMER:
            raise Unauthorized()
        self._assert_role(credential, role)
        return self.event_log.events()
