"""Provides the credential store: accounts, lockout state and sessions."""

from typing import Any, ContextManager, List, Optional
from datetime import datetime
import logging
import uuid

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm.session import Session

from .. import domain
from . import util
from .models import Base, DBAccount, DBRefreshToken

logger = logging.getLogger(__name__)


class CredentialStore(object):
    """
    Point lookups and atomic updates over accounts and session records.

    Every method takes the :class:`Session` of the enclosing
    :meth:`transaction`, so that the caller decides which changes commit
    together.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = util.new_session_factory(engine)

    @classmethod
    def from_uri(cls, database_uri: str) -> 'CredentialStore':
        """Create a store for a SQLAlchemy database URI."""
        return cls(util.new_engine(database_uri))

    def transaction(self) -> ContextManager[Session]:
        """Begin a unit of work. See :func:`.util.transaction`."""
        return util.transaction(self._session_factory)

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    def is_available(self) -> bool:
        """Check our connection to the database."""
        return util.is_available(self.engine)

    # Accounts.

    def _get_account(self, session: Session, for_update: bool,
                     criterion: Any) -> Optional[DBAccount]:
        query = session.query(DBAccount).filter(criterion)
        if for_update:
            query = query.with_for_update()
        db_account: Optional[DBAccount] = query.first()
        return db_account

    def get_by_id(self, session: Session, account_id: str,
                  for_update: bool = False) -> Optional[DBAccount]:
        """Get an account by internal id."""
        return self._get_account(session, for_update,
                                 DBAccount.account_id == account_id)

    def get_by_email(self, session: Session, email: str,
                     for_update: bool = False) -> Optional[DBAccount]:
        """Get an account by e-mail address."""
        return self._get_account(session, for_update, DBAccount.email == email)

    def get_by_public_id(self, session: Session, public_id: str,
                         for_update: bool = False) -> Optional[DBAccount]:
        """Get an account by public identifier."""
        return self._get_account(session, for_update,
                                 DBAccount.public_id == public_id)

    def get_by_username(self, session: Session, username: str,
                        for_update: bool = False) -> Optional[DBAccount]:
        """Get an account by username."""
        return self._get_account(session, for_update,
                                 DBAccount.username == username)

    def get_by_external_id(self, session: Session, provider: str,
                           external_id: str,
                           for_update: bool = False) -> Optional[DBAccount]:
        """Get an account by the subject id issued by an external provider."""
        if provider == domain.IdentityOrigin.APPLE:
            criterion = DBAccount.apple_id == external_id
        elif provider == domain.IdentityOrigin.GOOGLE:
            criterion = DBAccount.google_id == external_id
        else:
            raise ValueError(f'No such provider: {provider}')
        return self._get_account(session, for_update, criterion)

    def get_by_identifier(self, session: Session, identifier: str,
                          for_update: bool = False) -> Optional[DBAccount]:
        """
        Get an account by login identifier.

        Identifiers containing ``@`` are e-mail addresses; anything else is
        taken to be a public identifier.
        """
        identifier = identifier.strip()
        if '@' in identifier:
            return self.get_by_email(session, identifier.lower(), for_update)
        return self.get_by_public_id(session, identifier.upper(), for_update)

    def public_id_exists(self, session: Session, public_id: str) -> bool:
        """Determine whether a public identifier is already taken."""
        return self.get_by_public_id(session, public_id) is not None

    def add_account(self, session: Session, public_id: str, email: str,
                    username: str, full_name: str, origin: str,
                    role: str = domain.Role.UNVERIFIED,
                    password_hash: Optional[str] = None,
                    email_verified: bool = False,
                    apple_id: Optional[str] = None,
                    google_id: Optional[str] = None,
                    verification_code: Optional[str] = None,
                    verification_code_expires: Optional[datetime] = None) \
            -> DBAccount:
        """Add a new account. It is flushed, but not committed."""
        db_account = DBAccount(
            account_id=str(uuid.uuid4()),
            public_id=public_id,
            email=email,
            username=username,
            full_name=full_name,
            origin=origin,
            role=role,
            password_hash=password_hash,
            email_verified=email_verified,
            apple_id=apple_id,
            google_id=google_id,
            verification_code=verification_code,
            verification_code_expires=verification_code_expires,
            setup_stage_1=False,
            setup_stage_2=False,
            setup_stage_3=False,
            setup_stage_4=False,
            setup_complete=False,
            setup_stages_completed=0,
            failed_login_attempts=0,
            token_version=0,
        )
        session.add(db_account)
        session.flush()
        logger.debug('Added account %s', db_account.account_id)
        return db_account

    def increment_failed_logins(self, session: Session,
                                db_account: DBAccount) -> int:
        """
        Add one to the failed login counter, and get the new value.

        The increment happens in the database, so concurrent failures are
        all counted.
        """
        db_account.failed_login_attempts = \
            DBAccount.failed_login_attempts + 1
        session.flush()
        attempts: int = db_account.failed_login_attempts
        return attempts

    def lock(self, session: Session, db_account: DBAccount,
             until: datetime) -> None:
        """Suspend password logins until ``until``."""
        db_account.locked_until = until
        session.flush()

    def reset_failed_logins(self, session: Session,
                            db_account: DBAccount) -> None:
        """Reset the failed login counter, and clear any lockout."""
        db_account.failed_login_attempts = 0
        db_account.locked_until = None
        session.flush()

    def increment_token_version(self, session: Session,
                                db_account: DBAccount) -> int:
        """Advance the token version, and get the new value."""
        db_account.token_version = DBAccount.token_version + 1
        session.flush()
        version: int = db_account.token_version
        return version

    def pending_resets(self, session: Session,
                       now: datetime) -> List[DBAccount]:
        """Get all accounts with an unexpired password reset token."""
        pending: List[DBAccount] = (
            session.query(DBAccount)
            .filter(DBAccount.reset_token_hash.isnot(None))
            .filter(DBAccount.reset_token_expires >= now)
            .with_for_update()
            .all()
        )
        return pending

    # Session records.

    def add_refresh_token(self, session: Session, account_id: str,
                          token_hash: str, token_version: int,
                          expires: datetime) -> DBRefreshToken:
        """Store the hash of a newly issued refresh token."""
        record = DBRefreshToken(
            account_id=account_id,
            token_hash=token_hash,
            token_version=token_version,
            expires=expires
        )
        session.add(record)
        session.flush()
        return record

    def refresh_tokens_for(self, session: Session, account_id: str,
                           token_version: int) -> List[DBRefreshToken]:
        """Get the session records of an account for a token version."""
        records: List[DBRefreshToken] = (
            session.query(DBRefreshToken)
            .filter(DBRefreshToken.account_id == account_id)
            .filter(DBRefreshToken.token_version == token_version)
            .all()
        )
        return records

    def delete_refresh_token(self, session: Session, record_id: int,
                             token_hash: str) -> bool:
        """
        Delete a single session record.

        Both the id and the hash must match, so a record inserted after the
        one that was read is never deleted in its place. Returns ``False``
        if the record was already gone, e.g. because a concurrent request
        deleted it first.
        """
        result = session.execute(
            delete(DBRefreshToken)
            .where(DBRefreshToken.record_id == record_id)
            .where(DBRefreshToken.token_hash == token_hash)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_refresh_tokens(self, session: Session,
                              account_id: str) -> int:
        """Delete all session records of an account."""
        result = session.execute(
            delete(DBRefreshToken)
            .where(DBRefreshToken.account_id == account_id)
            .execution_options(synchronize_session=False)
        )
        count: int = result.rowcount
        logger.debug('Deleted %i session records of %s', count, account_id)
        return count
