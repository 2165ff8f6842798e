"""
Session/token issuer.

Turns an :class:`.Account` into an access/refresh token pair, and keeps the
stored session records in step with the tokens that are outstanding.

Access tokens are stateless: they are checked by signature and expiry alone.
Refresh tokens are stateful: each one is cross-checked against a stored
record (by hash) and against the account's current token version.
"""

from typing import Any, Dict
from datetime import timedelta
import logging
import uuid

from sqlalchemy.orm.session import Session

from . import domain, tokens, util
from .exceptions import AuthError, InvalidToken
from .store import CredentialStore
from .store.models import DBRefreshToken

logger = logging.getLogger(__name__)


class TokenIssuer(object):
    """Mints, rotates and revokes bearer tokens."""

    def __init__(self, store: CredentialStore, secret: str,
                 refresh_secret: str,
                 access_duration: timedelta = timedelta(minutes=15),
                 refresh_duration: timedelta = timedelta(days=30)) -> None:
        self._store = store
        self._secret = secret
        self._refresh_secret = refresh_secret
        self._access_duration = access_duration
        self._refresh_duration = refresh_duration

    def _access_token(self, account: domain.Account) -> str:
        issued = util.now()
        claims: Dict[str, Any] = {
            'type': tokens.ACCESS,
            'sub': account.account_id,
            'email': account.email,
            'public_id': account.public_id,
            'role': account.role,
            'email_verified': account.email_verified,
            'setup_complete': account.setup_complete,
            'setup_stages_completed': account.setup_stages_completed,
            'jti': uuid.uuid4().hex,
            'iat': util.epoch(issued),
            'exp': util.epoch(issued + self._access_duration),
        }
        return tokens.encode(claims, self._secret)

    def _refresh_token(self, account: domain.Account) -> str:
        issued = util.now()
        claims: Dict[str, Any] = {
            'type': tokens.REFRESH,
            'sub': account.account_id,
            'token_version': account.token_version,
            'jti': uuid.uuid4().hex,
            'iat': util.epoch(issued),
            'exp': util.epoch(issued + self._refresh_duration),
        }
        return tokens.encode(claims, self._refresh_secret)

    def mint(self, session: Session, account: domain.Account) \
            -> domain.TokenPair:
        """
        Issue a new token pair, and record the new session.

        The session record is added in the caller's transaction, so it
        commits (or not) together with whatever else changed the account.

        Parameters
        ----------
        session : :class:`Session`
            The enclosing store transaction.
        account : :class:`.Account`
            The account as it will be once the transaction commits.

        Returns
        -------
        :class:`.TokenPair`

        """
        access_token = self._access_token(account)
        refresh_token = self._refresh_token(account)
        self._store.add_refresh_token(
            session,
            account_id=account.account_id,
            token_hash=util.hash_token(refresh_token),
            token_version=account.token_version,
            expires=util.now() + self._refresh_duration
        )
        logger.debug('Minted tokens for %s at version %i',
                     account.account_id, account.token_version)
        return domain.TokenPair(access_token, refresh_token)

    def rotate(self, session: Session, record: DBRefreshToken,
               account: domain.Account) -> domain.TokenPair:
        """
        Replace a session record with a newly minted token pair.

        Raises
        ------
        :class:`AuthError`
            Raised if the record was deleted concurrently; only one of two
            racing rotations can succeed.

        """
        if not self._store.delete_refresh_token(session, record.record_id,
                                               record.token_hash):
            raise AuthError('Refresh token already used')
        return self.mint(session, account)

    def revoke_all(self, session: Session, account_id: str) -> int:
        """Delete every session record of an account."""
        return self._store.delete_refresh_tokens(session, account_id)

    def load_refresh(self, refresh_token: str) -> domain.RefreshClaims:
        """
        Verify the signature and expiry of a refresh token.

        Raises
        ------
        :class:`AuthError`

        """
        try:
            claims = tokens.decode(refresh_token, self._refresh_secret,
                                   token_type=tokens.REFRESH)
        except InvalidToken as e:
            raise AuthError('Invalid refresh token') from e
        return self._refresh_claims(claims)

    def peek_refresh(self, refresh_token: str) -> domain.RefreshClaims:
        """
        Get the claims of a refresh token without verifying it.

        Raises
        ------
        :class:`AuthError`
            Raised if the token cannot be parsed or lacks an account id.

        """
        try:
            claims = tokens.decode_unverified(refresh_token)
        except InvalidToken as e:
            raise AuthError('Invalid refresh token') from e
        return self._refresh_claims(claims)

    def _refresh_claims(self, claims: Dict[str, Any]) \
            -> domain.RefreshClaims:
        account_id = claims.get('sub')
        version = claims.get('token_version')
        if not account_id or not isinstance(version, int) \
                or isinstance(version, bool):
            raise AuthError('Invalid refresh token')
        return domain.RefreshClaims(account_id=str(account_id),
                                    token_version=version)

    def find_session(self, session: Session, claims: domain.RefreshClaims,
                     refresh_token: str) -> DBRefreshToken:
        """
        Find the unexpired session record of a presented refresh token.

        Raises
        ------
        :class:`AuthError`
            Raised if there is no record for the account and version, if
            none matches the token, or if the matching record has expired.

        """
        records = self._store.refresh_tokens_for(session, claims.account_id,
                                                 claims.token_version)
        if not records:
            raise AuthError('Invalid refresh token')
        for record in records:
            if util.tokens_match(record.token_hash, refresh_token):
                if record.expires <= util.now():
                    raise AuthError('Refresh token expired')
                return record
        raise AuthError('Invalid refresh token')

    def verify_access(self, access_token: str) -> domain.AccessClaims:
        """
        Verify an access token and get its claims.

        Raises
        ------
        :class:`AuthError`
            Raised if the token is forged, expired, not an access token, or
            is missing identity claims.

        """
        try:
            claims = tokens.decode(access_token, self._secret,
                                   token_type=tokens.ACCESS)
        except InvalidToken as e:
            raise AuthError('Invalid access token') from e
        if not claims.get('sub') or not claims.get('email') \
                or not claims.get('public_id'):
            raise AuthError('Invalid token payload')
        return domain.AccessClaims(
            account_id=claims['sub'],
            email=claims['email'],
            public_id=claims['public_id'],
            role=claims.get('role', domain.Role.UNVERIFIED),
            email_verified=bool(claims.get('email_verified')),
            setup_complete=bool(claims.get('setup_complete')),
            setup_stages_completed=int(claims.get('setup_stages_completed',
                                                  0)),
            issued_at=util.from_epoch(claims['iat']),
            expires=util.from_epoch(claims['exp'])
        )
