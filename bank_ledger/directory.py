"""
User Directory & Authentication Module

Maps session credentials to users. A credential is derived deterministically
from username and password, so logging in twice yields the same credential
and changing the password invalidates the old one immediately.

The credential is only a lookup key for a closed, single-process ledger.
It is not a password store and must not be reused as a network session
token.
"""

import hashlib
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import LoginFailed, UserAlreadyExists, UserNotFound


Credential = str


class Role(Enum):
    """User roles, fixed at registration"""
    CUSTOMER = "customer"
    MANAGER = "manager"
    AUDITOR = "auditor"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class User:
    """Registered ledger user"""
    id: int
    username: str
    role: Role


def derive_credential(username: str, password: str) -> Credential:
    """
    Derive the session credential for a username/password pair

    Both fields are length-prefixed before hashing so that
    ("ab", "c") and ("a", "bc") never collide.
    """
    hasher = hashlib.sha256()
    for part in (username, password):
        data = part.encode('utf-8')
        hasher.update(len(data).to_bytes(8, 'big'))
        hasher.update(data)
    return hasher.hexdigest()


class Directory:
    """Credential-keyed user directory with sequential user ids"""

    def __init__(self):
        self._users: Dict[Credential, User] = {}
        self._last_user_id = 0
        self._lock = threading.RLock()

    def _next_user_id(self) -> int:
        self._last_user_id += 1
        return self._last_user_id

    # User Management

    def has_username(self, username: str) -> bool:
        """Check if a username is already registered (case-sensitive)"""
        return any(user.username == username for user in self._users.values())

    def register(self, username: str, password: str, role: Role) -> User:
        """
        Register a new user

        Args:
            username: Unique username
            password: Password used to derive the credential
            role: Role of the new user

        Returns:
            Created User

        Raises:
            UserAlreadyExists: If the username is taken
        """
        with self._lock:
            if self.has_username(username):
                raise UserAlreadyExists()

            credential = derive_credential(username, password)
            user = User(id=self._next_user_id(), username=username, role=role)
            self._users[credential] = user
            return user

    def users(self) -> List[User]:
        """All users in registration order"""
        return sorted(self._users.values(), key=lambda u: u.id)

    def find_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID"""
        for user in self._users.values():
            if user.id == user_id:
                return user
        return None

    def find_customer(self, user_id: int) -> Optional[User]:
        """Get user by ID if it exists and holds the customer role"""
        user = self.find_by_id(user_id)
        if user and user.role == Role.CUSTOMER:
            return user
        return None

    def __len__(self) -> int:
        return len(self._users)

    # Authentication

    def login(self, username: str, password: str) -> Tuple[Credential, Role]:
        """
        Authenticate and return the session credential and role

        Raises:
            LoginFailed: If no user matches; unknown usernames and wrong
                passwords are reported identically
        """
        credential = derive_credential(username, password)
        user = self._users.get(credential)
        if user is None:
            raise LoginFailed()
        return credential, user.role

    def resolve(self, credential: Credential) -> User:
        """
        Get the user behind a credential

        Raises:
            UserNotFound: If the credential is unknown
        """
        user = self._users.get(credential)
        if user is None:
            raise UserNotFound()
        return user

    def change_password(self, credential: Credential, new_password: str) -> Credential:
        """
        Re-key a user under the credential for a new password

        The old credential stops resolving as soon as this returns.

        Returns:
            The new credential
        """
        with self._lock:
            user = self.resolve(credential)
            new_credential = derive_credential(user.username, new_password)
            del self._users[credential]
            self._users[new_credential] = user
            return new_credential
