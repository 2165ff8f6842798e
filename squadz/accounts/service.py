"""
Account lifecycle operations.

:class:`AccountService` is the public surface of this package. Each
operation validates its input, does all of its reads and writes in a single
store transaction, and sends any notification only after that transaction
has committed. External identity assertions are verified before any
transaction begins.
"""

from typing import Any, Callable, Mapping, Optional
from datetime import timedelta
import hmac
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from . import passwords, util, validation
from .domain import AccessClaims, AccountSummary, AuthResult, \
    ExternalProfile, IdentityOrigin, Role, TokenPair
from .exceptions import AuthError, ConflictError, ExpiredError, \
    LockedError, NoSuchAccount, NotificationFailed, \
    PasswordAuthenticationFailed, SetupIncomplete, ValidationError
from .generators import IdentifierGenerator, OneTimeCodeGenerator, \
    ResetTokenGenerator
from .issuer import TokenIssuer
from .notifications import Notifier
from .store import CredentialStore
from .store.models import DBAccount
from .verifiers import IdentityVerifier

logger = logging.getLogger(__name__)

REGISTERED = ('Registration successful. Please check your email for '
              'verification code.')
CODE_RESENT = ('If the email is registered and not yet verified, a new '
               'verification code has been sent.')
LOGGED_OUT = 'Logged out successfully'
RESET_REQUESTED = 'If the email exists, a password reset link has been sent.'
PASSWORD_RESET = ('Password reset successful. Please login with your new '
                  'password.')
PASSWORD_CHANGED = 'Password changed successfully. Please log in again.'

INVALID_CREDENTIALS = 'Invalid credentials'
INVALID_CODE = 'Invalid email or OTP'
CODE_EXPIRED = 'OTP has expired'
EMAIL_NOT_VERIFIED = 'Email not verified. Please verify your email first.'
INVALID_REFRESH = 'Invalid or expired refresh token'
VERSION_MISMATCH = 'Token version mismatch'
INVALID_RESET = 'Invalid or expired reset token'
CURRENT_PASSWORD_INCORRECT = 'Current password is incorrect'
NO_PASSWORD = 'Password change not available for OAuth accounts'
EMAIL_TAKEN = 'Email already registered'
USERNAME_TAKEN = 'Username already taken'
SETUP_INCOMPLETE = 'Account setup is not complete'


class AccountService(object):
    """
    Registration, authentication and session lifecycle of SQUADZ accounts.

    Parameters
    ----------
    store : :class:`.CredentialStore`
    issuer : :class:`.TokenIssuer`
    notifier : :class:`.Notifier`
    verifiers : dict
        :class:`.IdentityVerifier` instances keyed by provider (one of
        :attr:`.IdentityOrigin.EXTERNAL`).
    identifiers : :class:`.IdentifierGenerator`
    codes : :class:`.OneTimeCodeGenerator`
    reset_tokens : :class:`.ResetTokenGenerator`
    max_failed_logins : int
        Consecutive password failures after which the account is locked.
    lockout_duration : :class:`.timedelta`

    """

    def __init__(self, store: CredentialStore, issuer: TokenIssuer,
                 notifier: Notifier,
                 verifiers: Mapping[str, IdentityVerifier],
                 identifiers: Optional[IdentifierGenerator] = None,
                 codes: Optional[OneTimeCodeGenerator] = None,
                 reset_tokens: Optional[ResetTokenGenerator] = None,
                 max_failed_logins: int = 5,
                 lockout_duration: timedelta = timedelta(minutes=15)) \
            -> None:
        self._store = store
        self._issuer = issuer
        self._notifier = notifier
        self._verifiers = verifiers
        self._identifiers = identifiers or IdentifierGenerator()
        self._codes = codes or OneTimeCodeGenerator()
        self._reset_tokens = reset_tokens or ResetTokenGenerator()
        self._max_failed_logins = max_failed_logins
        self._lockout_duration = lockout_duration

    def _notify(self, send: Callable[..., None], *args: Any) -> None:
        try:
            send(*args)
        except NotificationFailed:
            raise
        except Exception as e:
            logger.error('Notification failed: %s', e)
            raise NotificationFailed('Could not send notification') from e

    @property
    def _locked_message(self) -> str:
        minutes = int(self._lockout_duration.total_seconds() // 60)
        return (f'Account locked due to too many failed login attempts. '
                f'Please try again in {minutes} minutes.')

    def register(self, full_name: str, username: str, email: str,
                 password: str, confirm_password: str) -> str:
        """
        Register a new password account.

        The account starts out unverified. A verification code is sent to
        ``email``; no tokens are issued until :meth:`verify_email`.

        Returns
        -------
        str
            Acknowledgement message.

        Raises
        ------
        :class:`ValidationError`
            Raised if the input is invalid, e.g. the passwords do not match.
        :class:`ConflictError`
            Raised if the e-mail address or username is already taken.
        :class:`NotificationFailed`
            Raised if the code could not be sent. The account exists.

        """
        validation.registration(full_name, username, email, password,
                                confirm_password).raise_for_errors()
        email = validation.normalize_email(email)
        username = username.strip()
        password_hash = passwords.hash_password(password)
        code = self._codes.generate()

        try:
            with self._store.transaction() as session:
                if self._store.get_by_email(session, email) is not None:
                    raise ConflictError(EMAIL_TAKEN)
                if self._store.get_by_username(session, username) is not None:
                    raise ConflictError(USERNAME_TAKEN)
                public_id = self._identifiers.generate(
                    lambda candidate: self._store.public_id_exists(session,
                                                                   candidate)
                )
                self._store.add_account(
                    session,
                    public_id=public_id,
                    email=email,
                    username=username,
                    full_name=full_name.strip(),
                    origin=IdentityOrigin.PASSWORD,
                    role=Role.UNVERIFIED,
                    password_hash=password_hash,
                    verification_code=code,
                    verification_code_expires=self._codes.expiry()
                )
        except IntegrityError as e:
            logger.debug('Lost a registration race: %s', e)
            raise ConflictError(f'{EMAIL_TAKEN} or {USERNAME_TAKEN.lower()}') \
                from e

        logger.info('Registered %s as %s', util.mask_email(email), public_id)
        self._notify(self._notifier.send_verification_code, email, code,
                     public_id)
        return REGISTERED

    def verify_email(self, email: str, code: str) -> AuthResult:
        """
        Verify an e-mail address with the code sent at registration.

        Promotes the account from ``unverified`` to ``basic`` and signs it
        in.

        Raises
        ------
        :class:`AuthError`
            Raised if there is no such account or the code does not match.
        :class:`ExpiredError`
            Raised if the code has expired.

        """
        validation.verification(email, code).raise_for_errors()
        email = validation.normalize_email(email)
        with self._store.transaction() as session:
            db_account = self._store.get_by_email(session, email,
                                                  for_update=True)
            if db_account is None or not db_account.verification_code \
                    or not hmac.compare_digest(db_account.verification_code,
                                               code):
                raise AuthError(INVALID_CODE)
            if db_account.verification_code_expires is None \
                    or self._codes.is_expired(
                        db_account.verification_code_expires):
                raise ExpiredError(CODE_EXPIRED)

            db_account.email_verified = True
            db_account.verification_code = None
            db_account.verification_code_expires = None
            if db_account.role == Role.UNVERIFIED:
                db_account.role = Role.BASIC
            session.flush()
            account = db_account.to_domain()
            tokens = self._issuer.mint(session, account)

        logger.info('Verified e-mail of %s', account.public_id)
        return AuthResult(tokens=tokens, account=account.summary)

    def resend_verification_code(self, email: str) -> str:
        """
        Issue a fresh verification code to an unverified account.

        The response is the same whether or not such an account exists.
        """
        validation.email_address(email).raise_for_errors()
        email = validation.normalize_email(email)
        code: Optional[str] = None
        with self._store.transaction() as session:
            db_account = self._store.get_by_email(session, email,
                                                  for_update=True)
            if db_account is not None and not db_account.email_verified \
                    and db_account.origin == IdentityOrigin.PASSWORD:
                code = self._codes.generate()
                db_account.verification_code = code
                db_account.verification_code_expires = self._codes.expiry()
                public_id = db_account.public_id

        if code is None:
            logger.debug('No unverified account for %s',
                         util.mask_email(email))
        else:
            self._notify(self._notifier.send_verification_code, email, code,
                         public_id)
        return CODE_RESENT

    def login(self, identifier: str, password: str) -> AuthResult:
        """
        Sign in with an e-mail address or public id, and a password.

        Consecutive failures are counted. The failure that reaches the
        limit locks the account for a while and sends a notice; while the
        account is locked, every attempt is refused, even with the right
        password.

        Parameters
        ----------
        identifier : str
            E-mail address (anything containing ``@``), or public id.
        password : str

        Returns
        -------
        :class:`.AuthResult`

        Raises
        ------
        :class:`AuthError`
            Raised if the credentials are not valid, or the e-mail address
            has not been verified.
        :class:`LockedError`
            Raised if the account is (or just became) locked.

        """
        validation.credentials(identifier, password).raise_for_errors()
        now = util.now()
        failure: Optional[Exception] = None
        unlock_time = None

        with self._store.transaction() as session:
            db_account = self._store.get_by_identifier(session, identifier,
                                                       for_update=True)
            if db_account is None:
                logger.debug('Login for unknown identifier')
                raise AuthError(INVALID_CREDENTIALS)
            if not db_account.email_verified:
                raise AuthError(EMAIL_NOT_VERIFIED)
            if db_account.locked_until is not None:
                if now < db_account.locked_until:
                    logger.debug('%s is locked', db_account.public_id)
                    raise LockedError(
                        'Account locked until '
                        f'{db_account.locked_until.isoformat()}',
                        db_account.locked_until
                    )
                self._store.reset_failed_logins(session, db_account)
            if db_account.origin != IdentityOrigin.PASSWORD \
                    or not db_account.password_hash:
                logger.debug('%s has no password', db_account.public_id)
                raise AuthError(INVALID_CREDENTIALS)

            try:
                passwords.check_password(password, db_account.password_hash)
            except PasswordAuthenticationFailed:
                attempts = self._store.increment_failed_logins(session,
                                                               db_account)
                logger.debug('Failed login %i for %s', attempts,
                             db_account.public_id)
                if attempts >= self._max_failed_logins:
                    unlock_time = now + self._lockout_duration
                    self._store.lock(session, db_account, unlock_time)
                    logger.info('Locked %s until %s', db_account.public_id,
                                unlock_time.isoformat())
                    failure = LockedError(self._locked_message, unlock_time)
                    email = db_account.email
                else:
                    failure = AuthError(INVALID_CREDENTIALS)
            else:
                self._store.reset_failed_logins(session, db_account)
                if passwords.needs_rehash(db_account.password_hash):
                    db_account.password_hash = \
                        passwords.hash_password(password)
                account = db_account.to_domain()
                tokens = self._issuer.mint(session, account)

        if unlock_time is not None:
            self._notify(self._notifier.send_lockout_notice, email,
                         unlock_time)
        if failure is not None:
            raise failure
        logger.debug('%s logged in', account.public_id)
        return AuthResult(tokens=tokens, account=account.summary)

    def external_sign_in(self, provider: str, assertion: str) -> AuthResult:
        """
        Sign in (or up) with an identity assertion from Apple or Google.

        An account is created on first sign-in. An e-mail address that is
        already registered by another method is never merged.

        Returns
        -------
        :class:`.AuthResult`
            With :attr:`.AuthResult.is_new_account` set.

        Raises
        ------
        :class:`ValidationError`
            Raised if ``provider`` is not supported.
        :class:`AuthError`
            Raised if the assertion is not valid.
        :class:`ConflictError`
            Raised if the e-mail address is registered with another method.
        :class:`VerifierUnavailable`
            Raised if the provider could not be reached.

        """
        validation.token('assertion', assertion).raise_for_errors()
        verifier = self._verifiers.get(provider)
        if verifier is None:
            raise ValidationError(f'Unsupported provider: {provider}')
        profile = verifier.verify(assertion)

        try:
            with self._store.transaction() as session:
                db_account = self._store.get_by_external_id(
                    session, provider, profile.external_id, for_update=True
                )
                if db_account is None:
                    db_account = self._store.get_by_email(
                        session, profile.email, for_update=True
                    )
                if db_account is not None:
                    if db_account.origin != provider:
                        logger.debug('%s is registered with %s',
                                     db_account.public_id, db_account.origin)
                        raise ConflictError(
                            f'{EMAIL_TAKEN} with {db_account.origin}'
                        )
                    external_id = db_account.apple_id \
                        if provider == IdentityOrigin.APPLE \
                        else db_account.google_id
                    if external_id and external_id != profile.external_id:
                        logger.warning('Subject mismatch for %s',
                                       db_account.public_id)
                        raise AuthError(INVALID_CREDENTIALS)
                    is_new_account = False
                else:
                    db_account = self._add_external(session, profile)
                    is_new_account = True
                account = db_account.to_domain()
                tokens = self._issuer.mint(session, account)
        except IntegrityError as e:
            logger.debug('Lost an external sign-up race: %s', e)
            raise ConflictError(EMAIL_TAKEN) from e

        if is_new_account:
            logger.info('Registered %s via %s', account.public_id, provider)
        return AuthResult(tokens=tokens, account=account.summary,
                          is_new_account=is_new_account)

    def _add_external(self, session: Session,
                      profile: ExternalProfile) -> DBAccount:
        def taken(candidate: str) -> bool:
            return self._store.public_id_exists(session, candidate) \
                or self._store.get_by_username(
                    session, _derived_username(candidate)) is not None

        public_id = self._identifiers.generate(taken)
        full_name = profile.display_name or profile.email.split('@')[0]
        return self._store.add_account(
            session,
            public_id=public_id,
            email=profile.email,
            username=_derived_username(public_id),
            full_name=full_name,
            origin=profile.provider,
            role=Role.BASIC,
            email_verified=True,
            apple_id=profile.external_id
            if profile.provider == IdentityOrigin.APPLE else None,
            google_id=profile.external_id
            if profile.provider == IdentityOrigin.GOOGLE else None
        )

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new token pair.

        The presented token is used up: its session record is replaced by
        the new one, atomically. Also clears any failed-login state.

        Raises
        ------
        :class:`AuthError`
            Raised for any failure at all, always with the same message.

        """
        try:
            tokens = self._refresh(refresh_token)
        except Exception as e:
            logger.info('Refresh rejected: %s', e)
            raise AuthError(INVALID_REFRESH) from None
        return tokens

    def _refresh(self, refresh_token: str) -> TokenPair:
        validation.token('refresh_token', refresh_token).raise_for_errors()
        claims = self._issuer.load_refresh(refresh_token)
        with self._store.transaction() as session:
            db_account = self._store.get_by_id(session, claims.account_id,
                                               for_update=True)
            if db_account is None:
                raise NoSuchAccount('Account not found')
            if db_account.token_version != claims.token_version:
                raise AuthError(VERSION_MISMATCH)
            record = self._issuer.find_session(session, claims, refresh_token)
            self._store.reset_failed_logins(session, db_account)
            account = db_account.to_domain()
            tokens = self._issuer.rotate(session, record, account)
        logger.debug('Rotated session of %s', account.public_id)
        return tokens

    def logout(self, refresh_token: str) -> str:
        """
        End every session of the account that holds ``refresh_token``.

        The token is not verified, so an expired token can still be used
        to sign out.

        Raises
        ------
        :class:`AuthError`
            Raised if the token cannot be parsed.

        """
        validation.token('refresh_token', refresh_token).raise_for_errors()
        claims = self._issuer.peek_refresh(refresh_token)
        with self._store.transaction() as session:
            count = self._issuer.revoke_all(session, claims.account_id)
        logger.debug('Ended %i sessions of %s', count, claims.account_id)
        return LOGGED_OUT

    def forgot_password(self, email: str) -> str:
        """
        Send a password reset token, if ``email`` is a password account.

        Accounts created by Apple or Google sign-in have no password to
        reset, so they are sent nothing. The response is the same whether
        or not a token was sent.
        """
        validation.email_address(email).raise_for_errors()
        email = validation.normalize_email(email)
        raw_token: Optional[str] = None
        with self._store.transaction() as session:
            db_account = self._store.get_by_email(session, email,
                                                  for_update=True)
            if db_account is not None \
                    and db_account.origin == IdentityOrigin.PASSWORD:
                raw_token = self._reset_tokens.generate()
                db_account.reset_token_hash = util.hash_token(raw_token)
                db_account.reset_token_expires = self._reset_tokens.expiry()

        if raw_token is None:
            logger.debug('No password account for %s',
                         util.mask_email(email))
        else:
            logger.info('Password reset requested for %s',
                        util.mask_email(email))
            self._notify(self._notifier.send_password_reset, email,
                         raw_token)
        return RESET_REQUESTED

    def reset_password(self, reset_token: str, new_password: str,
                       confirm_password: str) -> str:
        """
        Set a new password with a reset token.

        Every outstanding session of the account is ended.

        Raises
        ------
        :class:`ValidationError`
            Raised if the passwords do not match, or are too weak.
        :class:`AuthError`
            Raised if the token does not match any pending reset.

        """
        validation.password_reset(reset_token, new_password,
                                  confirm_password).raise_for_errors()
        password_hash = passwords.hash_password(new_password)
        with self._store.transaction() as session:
            for db_account in self._store.pending_resets(session, util.now()):
                if util.tokens_match(db_account.reset_token_hash,
                                     reset_token):
                    break
            else:
                raise AuthError(INVALID_RESET)

            db_account.password_hash = password_hash
            db_account.reset_token_hash = None
            db_account.reset_token_expires = None
            self._store.increment_token_version(session, db_account)
            self._issuer.revoke_all(session, db_account.account_id)
            public_id = db_account.public_id

        logger.info('Password of %s was reset', public_id)
        return PASSWORD_RESET

    def change_password(self, account_id: str, current_password: str,
                        new_password: str, confirm_password: str) -> str:
        """
        Change the password of a signed-in account.

        Every outstanding session of the account is ended.

        Raises
        ------
        :class:`ValidationError`
            Raised if the account has no password, the current password is
            wrong, or the new passwords do not match.
        :class:`NoSuchAccount`

        """
        validation.password_change(current_password, new_password,
                                   confirm_password).raise_for_errors()
        with self._store.transaction() as session:
            db_account = self._store.get_by_id(session, account_id,
                                               for_update=True)
            if db_account is None:
                raise NoSuchAccount('Account not found')
            if db_account.origin != IdentityOrigin.PASSWORD \
                    or not db_account.password_hash:
                raise ValidationError(NO_PASSWORD)
            try:
                passwords.check_password(current_password,
                                         db_account.password_hash)
            except PasswordAuthenticationFailed as e:
                raise ValidationError(CURRENT_PASSWORD_INCORRECT) from e

            db_account.password_hash = passwords.hash_password(new_password)
            self._store.increment_token_version(session, db_account)
            self._issuer.revoke_all(session, account_id)
            public_id = db_account.public_id

        logger.info('Password of %s was changed', public_id)
        return PASSWORD_CHANGED

    def complete_setup_stage(self, account_id: str,
                             stage: int) -> AccountSummary:
        """
        Mark an account setup stage as complete.

        Completing an already completed stage changes nothing. Completing
        the last stage upgrades a ``basic`` account to ``player``.

        Raises
        ------
        :class:`ValidationError`
            Raised if ``stage`` is not a setup stage.
        :class:`NoSuchAccount`

        """
        validation.setup_stage(stage).raise_for_errors()
        with self._store.transaction() as session:
            db_account = self._store.get_by_id(session, account_id,
                                               for_update=True)
            if db_account is None:
                raise NoSuchAccount('Account not found')
            if not db_account.get_stage(stage):
                db_account.set_stage(stage, True)
            if db_account.setup_complete and db_account.role == Role.BASIC:
                db_account.role = Role.PLAYER
                logger.info('Upgraded %s to %s', db_account.public_id,
                            Role.PLAYER)
            session.flush()
            summary = db_account.to_domain().summary
        return summary

    def revoke_setup_stage(self, account_id: str,
                           stage: int) -> AccountSummary:
        """
        Mark a completed setup stage as incomplete again.

        A ``player`` whose setup is no longer complete is downgraded to
        ``basic``.

        Raises
        ------
        :class:`ValidationError`
            Raised if ``stage`` is not a setup stage, or is not complete.
        :class:`NoSuchAccount`

        """
        validation.setup_stage(stage).raise_for_errors()
        with self._store.transaction() as session:
            db_account = self._store.get_by_id(session, account_id,
                                               for_update=True)
            if db_account is None:
                raise NoSuchAccount('Account not found')
            if not db_account.get_stage(stage):
                raise ValidationError(f'Setup stage {stage} is not completed')
            db_account.set_stage(stage, False)
            if db_account.role == Role.PLAYER \
                    and not db_account.setup_complete:
                db_account.role = Role.BASIC
                logger.info('Downgraded %s to %s', db_account.public_id,
                            Role.BASIC)
            session.flush()
            summary = db_account.to_domain().summary
        return summary

    def verify_access(self, access_token: str) -> AccessClaims:
        """Verify an access token. See :meth:`.TokenIssuer.verify_access`."""
        return self._issuer.verify_access(access_token)

    def get_account(self, account_id: str) -> AccountSummary:
        """Get the summary of an account."""
        with self._store.transaction() as session:
            db_account = self._store.get_by_id(session, account_id)
            if db_account is None:
                raise NoSuchAccount('Account not found')
            summary = db_account.to_domain().summary
        return summary


def _derived_username(public_id: str) -> str:
    """Username of an account created by external sign-in."""
    return f"user_{public_id.split('-', 1)[-1]}"


def require_setup_complete(claims: AccessClaims) -> None:
    """
    Require that the holder of an access token has finished account setup.

    Raises
    ------
    :class:`SetupIncomplete`

    """
    if not claims.setup_complete \
            or claims.role in (Role.UNVERIFIED, Role.BASIC):
        raise SetupIncomplete(SETUP_INCOMPLETE)
