"""
Test suite for directory module

Tests credential derivation, registration, login and password changes.
"""

import pytest

from bank_ledger.directory import Directory, Role, User, derive_credential
from bank_ledger.errors import LoginFailed, UserAlreadyExists, UserNotFound


@pytest.fixture
def directory():
    """Create an empty directory for tests"""
    return Directory()


class TestCredentials:
    """Test credential derivation"""

    def test_deterministic(self):
        assert derive_credential("roy", "pw") == derive_credential("roy", "pw")

    def test_sha256_hex(self):
        credential = derive_credential("roy", "pw")
        assert len(credential) == 64
        int(credential, 16)

    def test_distinct_inputs_distinct_credentials(self):
        assert derive_credential("roy", "pw") != derive_credential("roy", "pw2")
        assert derive_credential("roy", "pw") != derive_credential("Roy", "pw")

    def test_field_boundaries_matter(self):
        """Test that shifting characters between fields changes the credential"""
        assert derive_credential("ab", "c") != derive_credential("a", "bc")


class TestRegistration:
    """Test user registration"""

    def test_register_user(self, directory):
        user = directory.register("roy", "pw", Role.CUSTOMER)

        assert user == User(id=1, username="roy", role=Role.CUSTOMER)
        assert directory.has_username("roy")
        assert len(directory) == 1

    def test_ids_start_at_one_and_increase(self, directory):
        ids = [directory.register(f"user{i}", "pw", Role.CUSTOMER).id for i in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_duplicate_username(self, directory):
        directory.register("roy", "pw", Role.CUSTOMER)

        with pytest.raises(UserAlreadyExists):
            directory.register("roy", "different", Role.MANAGER)

        # Failed registration does not consume an id
        assert directory.register("amy", "pw", Role.CUSTOMER).id == 2

    def test_usernames_case_sensitive(self, directory):
        directory.register("roy", "pw", Role.CUSTOMER)
        directory.register("Roy", "pw", Role.CUSTOMER)

        assert not directory.has_username("ROY")
        assert [u.username for u in directory.users()] == ["roy", "Roy"]

    def test_find_customer(self, directory):
        directory.register("roy", "pw", Role.CUSTOMER)
        directory.register("boss", "pw", Role.MANAGER)

        assert directory.find_customer(1).username == "roy"
        assert directory.find_customer(2) is None
        assert directory.find_by_id(2).role == Role.MANAGER
        assert directory.find_by_id(3) is None


class TestAuthentication:
    """Test login, credential resolution and password changes"""

    def test_login(self, directory):
        directory.register("roy", "pw", Role.AUDITOR)

        credential, role = directory.login("roy", "pw")

        assert credential == derive_credential("roy", "pw")
        assert role == Role.AUDITOR
        assert directory.resolve(credential).username == "roy"

    def test_login_is_stable(self, directory):
        directory.register("roy", "pw", Role.CUSTOMER)
        assert directory.login("roy", "pw") == directory.login("roy", "pw")

    def test_failed_login_does_not_reveal_reason(self, directory):
        directory.register("roy", "pw", Role.CUSTOMER)

        with pytest.raises(LoginFailed) as wrong_password:
            directory.login("roy", "nope")
        with pytest.raises(LoginFailed) as wrong_user:
            directory.login("nobody", "pw")

        assert str(wrong_password.value) == str(wrong_user.value)

    def test_resolve_unknown(self, directory):
        with pytest.raises(UserNotFound):
            directory.resolve("unknown")

    def test_change_password(self, directory):
        user = directory.register("roy", "old", Role.CUSTOMER)
        old_credential, _ = directory.login("roy", "old")

        new_credential = directory.change_password(old_credential, "new")

        assert directory.resolve(new_credential) == user
        with pytest.raises(UserNotFound):
            directory.resolve(old_credential)
        with pytest.raises(LoginFailed):
            directory.login("roy", "old")
        assert directory.login("roy", "new") == (new_credential, Role.CUSTOMER)
        assert len(directory) == 1

    def test_change_password_unknown(self, directory):
        with pytest.raises(UserNotFound):
            directory.change_password("unknown", "new")
