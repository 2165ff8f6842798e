"""Tests for :class:`squadz.accounts.store.CredentialStore`."""

from unittest import TestCase, mock
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, OperationalError

from ... import domain, util
from ...exceptions import Unavailable
from .. import util as store_util
from .util import temporary_store


def add_account(store, session, **kwargs):
    params = dict(public_id='SQZ-AAAAAAAA', email='jo@bloggs.com',
                  username='jbloggs', full_name='Jo Bloggs',
                  origin=domain.IdentityOrigin.PASSWORD,
                  password_hash='notarealhash')
    params.update(kwargs)
    return store.add_account(session, **params)


class TestAccounts(TestCase):
    """Point lookups and updates of accounts."""

    def test_add_and_get(self):
        """An added account can be found by each of its identifiers."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id

            with store.transaction() as session:
                by_id = store.get_by_id(session, account_id)
                self.assertEqual(by_id.email, 'jo@bloggs.com')
                self.assertEqual(by_id.role, domain.Role.UNVERIFIED)
                self.assertEqual(by_id.failed_login_attempts, 0)
                self.assertEqual(by_id.token_version, 0)
                self.assertIsNotNone(by_id.created)
                self.assertEqual(
                    store.get_by_username(session, 'jbloggs').account_id,
                    account_id
                )
                self.assertIsNone(store.get_by_email(session, 'no@one.com'))

    def test_get_by_identifier(self):
        """E-mail addresses contain an ``@``; anything else is a public id."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                self.assertEqual(
                    store.get_by_identifier(session,
                                            ' Jo@Bloggs.com ').account_id,
                    account_id
                )
                self.assertEqual(
                    store.get_by_identifier(session,
                                            'sqz-aaaaaaaa').account_id,
                    account_id
                )
                self.assertIsNone(
                    store.get_by_identifier(session, 'SQZ-BBBBBBBB')
                )

    def test_get_by_external_id(self):
        """Accounts can be found by the subject id of their provider."""
        with temporary_store() as store:
            with store.transaction() as session:
                add_account(store, session,
                            origin=domain.IdentityOrigin.GOOGLE,
                            password_hash=None, google_id='g-123')
                found = store.get_by_external_id(
                    session, domain.IdentityOrigin.GOOGLE, 'g-123'
                )
                self.assertEqual(found.public_id, 'SQZ-AAAAAAAA')
                self.assertIsNone(store.get_by_external_id(
                    session, domain.IdentityOrigin.APPLE, 'g-123'
                ))
                with self.assertRaises(ValueError):
                    store.get_by_external_id(session, 'myspace', 'g-123')

    def test_public_id_exists(self):
        with temporary_store() as store:
            with store.transaction() as session:
                add_account(store, session)
                self.assertTrue(store.public_id_exists(session,
                                                       'SQZ-AAAAAAAA'))
                self.assertFalse(store.public_id_exists(session,
                                                        'SQZ-BBBBBBBB'))

    def test_duplicate_email(self):
        """The e-mail address is unique."""
        with temporary_store() as store:
            with store.transaction() as session:
                add_account(store, session)
            with self.assertRaises(IntegrityError):
                with store.transaction() as session:
                    add_account(store, session, public_id='SQZ-BBBBBBBB',
                                username='other')
            with store.transaction() as session:
                self.assertIsNone(store.get_by_username(session, 'other'))

    def test_failed_logins(self):
        """The failed login counter is incremented and reset in place."""
        with temporary_store() as store:
            with store.transaction() as session:
                db_account = add_account(store, session)
                self.assertEqual(
                    store.increment_failed_logins(session, db_account), 1
                )
                self.assertEqual(
                    store.increment_failed_logins(session, db_account), 2
                )
                until = util.now() + timedelta(minutes=15)
                store.lock(session, db_account, until)
                account_id = db_account.account_id

            with store.transaction() as session:
                db_account = store.get_by_id(session, account_id)
                self.assertEqual(db_account.failed_login_attempts, 2)
                self.assertEqual(util.epoch(db_account.locked_until),
                                 util.epoch(until))
                store.reset_failed_logins(session, db_account)

            with store.transaction() as session:
                db_account = store.get_by_id(session, account_id)
                self.assertEqual(db_account.failed_login_attempts, 0)
                self.assertIsNone(db_account.locked_until)

    def test_increment_token_version(self):
        with temporary_store() as store:
            with store.transaction() as session:
                db_account = add_account(store, session)
                self.assertEqual(
                    store.increment_token_version(session, db_account), 1
                )
                self.assertEqual(db_account.to_domain().token_version, 1)

    def test_pending_resets(self):
        """Only accounts with an unexpired reset token are pending."""
        now = util.now()
        with temporary_store() as store:
            with store.transaction() as session:
                pending = add_account(store, session)
                pending.reset_token_hash = util.hash_token('a')
                pending.reset_token_expires = now + timedelta(hours=1)
                expired = add_account(store, session, public_id='SQZ-B',
                                      email='b@b.com', username='b')
                expired.reset_token_hash = util.hash_token('b')
                expired.reset_token_expires = now - timedelta(seconds=5)
                add_account(store, session, public_id='SQZ-C',
                            email='c@c.com', username='c')

            with store.transaction() as session:
                found = store.pending_resets(session, now)
                self.assertEqual([a.public_id for a in found],
                                 ['SQZ-AAAAAAAA'])


class TestSetupStages(TestCase):
    """Setup stage flags stay consistent with their count."""

    def test_set_stage(self):
        with temporary_store() as store:
            with store.transaction() as session:
                db_account = add_account(store, session)
                for stage in (1, 2, 3):
                    db_account.set_stage(stage, True)
                self.assertEqual(db_account.setup_stages_completed, 3)
                self.assertFalse(db_account.setup_complete)

                db_account.set_stage(4, True)
                self.assertEqual(db_account.setup_stages_completed, 4)
                self.assertTrue(db_account.setup_complete)

                db_account.set_stage(2, False)
                account = db_account.to_domain()
                self.assertEqual(account.setup_stages,
                                 (True, False, True, True))
                self.assertEqual(account.setup_stages_completed, 3)
                self.assertFalse(account.setup_complete)


class TestRefreshTokens(TestCase):
    """Session records."""

    def setUp(self):
        self.expires = util.now() + timedelta(days=30)

    def test_refresh_tokens_for(self):
        """Records are selected by account and token version."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                store.add_refresh_token(session, account_id, 'a' * 64, 0,
                                        self.expires)
                store.add_refresh_token(session, account_id, 'b' * 64, 0,
                                        self.expires)
                store.add_refresh_token(session, account_id, 'c' * 64, 1,
                                        self.expires)

            with store.transaction() as session:
                self.assertEqual(
                    len(store.refresh_tokens_for(session, account_id, 0)), 2
                )
                self.assertEqual(
                    len(store.refresh_tokens_for(session, account_id, 1)), 1
                )
                self.assertEqual(
                    store.refresh_tokens_for(session, 'nobody', 0), []
                )

    def test_delete_refresh_token(self):
        """A record can only be deleted once."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                record_id = store.add_refresh_token(
                    session, account_id, 'a' * 64, 0, self.expires
                ).record_id

            with store.transaction() as session:
                self.assertTrue(store.delete_refresh_token(session, record_id,
                                                           'a' * 64))
            with store.transaction() as session:
                self.assertFalse(store.delete_refresh_token(session,
                                                            record_id,
                                                            'a' * 64))

    def test_delete_refresh_token_other_hash(self):
        """A record is not deleted when its hash differs."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                record_id = store.add_refresh_token(
                    session, account_id, 'a' * 64, 0, self.expires
                ).record_id

            with store.transaction() as session:
                self.assertFalse(store.delete_refresh_token(session,
                                                            record_id,
                                                            'b' * 64))
            with store.transaction() as session:
                self.assertEqual(
                    len(store.refresh_tokens_for(session, account_id, 0)), 1
                )

    def test_record_ids_not_reused(self):
        """A deleted record's id is not given to the next record."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                first = store.add_refresh_token(
                    session, account_id, 'a' * 64, 0, self.expires
                ).record_id
            with store.transaction() as session:
                store.delete_refresh_token(session, first, 'a' * 64)
            with store.transaction() as session:
                second = store.add_refresh_token(
                    session, account_id, 'b' * 64, 0, self.expires
                ).record_id
            self.assertNotEqual(first, second)

    def test_delete_refresh_tokens(self):
        """All records of an account are deleted, and no others."""
        with temporary_store() as store:
            with store.transaction() as session:
                account_id = add_account(store, session).account_id
                other_id = add_account(store, session, public_id='SQZ-B',
                                       email='b@b.com',
                                       username='b').account_id
                for i, owner in enumerate([account_id, account_id, other_id]):
                    store.add_refresh_token(session, owner, str(i) * 64, 0,
                                            self.expires)

            with store.transaction() as session:
                self.assertEqual(
                    store.delete_refresh_tokens(session, account_id), 2
                )
            with store.transaction() as session:
                self.assertEqual(
                    len(store.refresh_tokens_for(session, other_id, 0)), 1
                )


class TestTransaction(TestCase):
    """Tests for :func:`.store.util.transaction`."""

    def test_rollback_on_error(self):
        """Nothing is committed if the block raises."""
        with temporary_store() as store:
            with self.assertRaises(KeyError):
                with store.transaction() as session:
                    add_account(store, session)
                    raise KeyError('nope')
            with store.transaction() as session:
                self.assertIsNone(store.get_by_email(session,
                                                     'jo@bloggs.com'))

    def test_unavailable(self):
        """A database that cannot be reached raises :class:`.Unavailable`."""
        session = mock.MagicMock()
        session.commit.side_effect = OperationalError('SELECT 1', {},
                                                      Exception('gone'))
        factory = mock.MagicMock(return_value=session)
        with self.assertRaises(Unavailable):
            with store_util.transaction(factory):
                pass
        session.rollback.assert_called_once()
        session.close.assert_called_once()

    def test_is_available(self):
        with temporary_store() as store:
            self.assertTrue(store.is_available())
