"""Tests for :mod:`squadz.accounts.passwords`."""

from unittest import TestCase

from argon2 import PasswordHasher

from .. import passwords
from ..exceptions import PasswordAuthenticationFailed


class TestPasswords(TestCase):
    """Hashing and checking passwords."""

    def test_check_password(self):
        """A hash checks out against its own password only."""
        encrypted = passwords.hash_password('S3cret!pw')
        self.assertTrue(encrypted.startswith('$argon2id$'))
        passwords.check_password('S3cret!pw', encrypted)
        with self.assertRaises(PasswordAuthenticationFailed):
            passwords.check_password('S3cret!px', encrypted)

    def test_salted(self):
        self.assertNotEqual(passwords.hash_password('S3cret!pw'),
                            passwords.hash_password('S3cret!pw'))

    def test_invalid_hash(self):
        """A corrupt stored hash fails closed."""
        with self.assertRaises(PasswordAuthenticationFailed):
            passwords.check_password('S3cret!pw', 'not-a-hash')

    def test_needs_rehash(self):
        """Hashes made with other parameters need a rehash."""
        self.assertFalse(
            passwords.needs_rehash(passwords.hash_password('S3cret!pw'))
        )
        weak = PasswordHasher(time_cost=1, memory_cost=8192, parallelism=1)
        self.assertTrue(passwords.needs_rehash(weak.hash('S3cret!pw')))
