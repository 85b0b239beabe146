"""Unit tests for auth/passwords.py -- salted hashing and comparison.

Covers:
- hash_password() is deterministic for a fixed (password, salt)
- different salts give different hashes for the same password
- create_salt() honours the configured cost factor
- passwords longer than bcrypt's 72-byte limit are neither rejected nor truncated
- passwords_match() accepts only the exact password
"""

from auth.passwords import DUMMY_SALT, create_salt, hash_password, passwords_match


def test_hash_is_deterministic():
    salt = create_salt()
    assert hash_password("popcorn", salt) == hash_password("popcorn", salt)


def test_different_salts_give_different_hashes():
    assert hash_password("popcorn", create_salt()) != hash_password("popcorn", create_salt())


def test_salts_are_unique():
    assert len({create_salt() for _ in range(5)}) == 5


def test_salt_uses_configured_cost():
    # conftest sets BCRYPT_ROUNDS=4
    assert create_salt().startswith("$2b$04$")


def test_hash_never_contains_plaintext():
    assert "popcorn" not in hash_password("popcorn", create_salt())


def test_long_passwords_are_not_truncated():
    salt = create_salt()
    prefix = "x" * 80
    assert hash_password(prefix + "a", salt) != hash_password(prefix + "b", salt)


def test_empty_password_hashes():
    salt = create_salt()
    assert passwords_match("", salt, hash_password("", salt))


def test_passwords_match_exact_only():
    salt = create_salt()
    stored = hash_password("Secret", salt)
    assert passwords_match("Secret", salt, stored)
    assert not passwords_match("secret", salt, stored)
    assert not passwords_match("Secret ", salt, stored)


def test_dummy_salt_is_usable():
    assert hash_password("anything", DUMMY_SALT)
