"""Tests for :mod:`squadz.accounts.generators`."""

from unittest import TestCase, mock
from datetime import timedelta
import re

from .. import generators, util


class TestIdentifierGenerator(TestCase):
    """Tests for :class:`.generators.IdentifierGenerator`."""

    def test_format(self):
        """Identifiers are the prefix and eight uppercase alphanumerics."""
        public_id = generators.IdentifierGenerator().candidate()
        self.assertRegex(public_id, r'^SQZ-[A-Z2-9]{8}$')

    def test_no_look_alikes(self):
        """Characters that are easily misread are never used."""
        generator = generators.IdentifierGenerator()
        suffixes = ''.join(generator.candidate()[4:] for _ in range(500))
        self.assertFalse(set(suffixes) & set('0O1I'))
        self.assertEqual(len(generators.PUBLIC_ID_ALPHABET), 32)

    def test_prefix(self):
        public_id = generators.IdentifierGenerator(prefix='TST').candidate()
        self.assertTrue(public_id.startswith('TST-'))

    def test_retries_on_collision(self):
        """Candidates that already exist are skipped."""
        generator = generators.IdentifierGenerator()
        exists = mock.MagicMock(side_effect=[True, True, False])
        public_id = generator.generate(exists)
        self.assertEqual(exists.call_count, 3)
        self.assertEqual(exists.call_args[0][0], public_id)


class TestOneTimeCodeGenerator(TestCase):
    """Tests for :class:`.generators.OneTimeCodeGenerator`."""

    def test_code(self):
        """Codes are exactly six digits, including leading zeros."""
        generator = generators.OneTimeCodeGenerator()
        with mock.patch(f'{generators.__name__}.secrets.randbelow',
                        return_value=42):
            self.assertEqual(generator.generate(), '000042')
        for _ in range(20):
            self.assertTrue(re.fullmatch(r'[0-9]{6}', generator.generate()))

    def test_expiry(self):
        """Codes expire after three minutes."""
        generator = generators.OneTimeCodeGenerator()
        expires = generator.expiry()
        self.assertAlmostEqual((expires - util.now()).total_seconds(),
                               180, delta=2)
        self.assertFalse(generator.is_expired(expires))
        with mock.patch(f'{util.__name__}.now',
                        return_value=expires + timedelta(seconds=1)):
            self.assertTrue(generator.is_expired(expires))


class TestResetTokenGenerator(TestCase):
    """Tests for :class:`.generators.ResetTokenGenerator`."""

    def test_token(self):
        """Tokens are 32 random bytes, hex encoded."""
        generator = generators.ResetTokenGenerator()
        token = generator.generate()
        self.assertRegex(token, r'^[0-9a-f]{64}$')
        self.assertNotEqual(token, generator.generate())

    def test_expiry(self):
        """Tokens expire after an hour."""
        generator = generators.ResetTokenGenerator()
        expires = generator.expiry()
        self.assertAlmostEqual((expires - util.now()).total_seconds(),
                               3600, delta=2)
        self.assertFalse(generator.is_expired(expires))
        self.assertTrue(
            generator.is_expired(util.now() - timedelta(seconds=1))
        )
