"""Tests for the command-line helpers."""

from unittest import TestCase, mock

from click.testing import CliRunner

from ... import domain, factory
from ...issuer import TokenIssuer
from ...store.tests.util import temporary_store
from .. import create_db, generate_token

CONFIG = factory.get_application_config({
    'DATABASE_URI': 'sqlite:///:memory:',
    'JWT_SECRET': 'foosecret',
    'JWT_REFRESH_SECRET': 'barsecret'
})


class TestGenerateToken(TestCase):
    """Tests for :func:`.generate_token.generate_token`."""

    def test_generate(self):
        """Prints an access token for an existing account."""
        with temporary_store() as store:
            with store.transaction() as session:
                store.add_account(session, public_id='SQZ-AAAAAAAA',
                                  email='jo@bloggs.com', username='jbloggs',
                                  full_name='Jo Bloggs',
                                  origin=domain.IdentityOrigin.PASSWORD,
                                  role=domain.Role.BASIC,
                                  email_verified=True)
            with mock.patch(f'{generate_token.__name__}.create_store',
                            return_value=store), \
                    mock.patch(f'{generate_token.__name__}'
                               '.get_application_config',
                               return_value=CONFIG):
                result = CliRunner().invoke(generate_token.generate_token,
                                            ['--identifier', 'SQZ-AAAAAAAA'])
            self.assertEqual(result.exit_code, 0, result.output)
            claims = TokenIssuer(store, 'foosecret', 'barsecret') \
                .verify_access(result.output.strip())
            self.assertEqual(claims.public_id, 'SQZ-AAAAAAAA')

    def test_no_such_account(self):
        with temporary_store() as store:
            with mock.patch(f'{generate_token.__name__}.create_store',
                            return_value=store), \
                    mock.patch(f'{generate_token.__name__}'
                               '.get_application_config',
                               return_value=CONFIG):
                result = CliRunner().invoke(generate_token.generate_token,
                                            ['--identifier', 'no@one.com'])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('No such account', result.output)


class TestCreateDB(TestCase):
    """Tests for :func:`.create_db.create_db`."""

    @mock.patch(f'{create_db.__name__}.CredentialStore')
    @mock.patch(f'{create_db.__name__}.get_application_config')
    def test_create(self, mock_config, mock_store):
        mock_config.return_value = CONFIG
        result = CliRunner().invoke(create_db.create_db, [])
        self.assertEqual(result.exit_code, 0, result.output)
        mock_store.from_uri.assert_called_once_with('sqlite:///:memory:')
        mock_store.from_uri.return_value.create_all.assert_called_once()
        mock_store.from_uri.return_value.drop_all.assert_not_called()
