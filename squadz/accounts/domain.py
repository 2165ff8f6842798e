"""Defines account and session concepts for SQUADZ services."""

from typing import Optional, NamedTuple, Tuple
from datetime import datetime


class IdentityOrigin(object):
    """
    The authentication method with which an account was created.

    The origin of an account is fixed for its lifetime. A login attempt using
    a different method is rejected, never merged into the existing account.
    """

    PASSWORD = 'password'
    APPLE = 'apple'
    GOOGLE = 'google'

    EXTERNAL = (APPLE, GOOGLE)
    ALL = (PASSWORD, APPLE, GOOGLE)


class Role(object):
    """Coarse account roles."""

    UNVERIFIED = 'unverified'
    """Registered, but the e-mail address has not been verified yet."""

    BASIC = 'basic'
    """Verified account that has not finished account setup."""

    PLAYER = 'player'
    """Verified account with all setup stages complete."""

    CAPTAIN = 'captain'
    VICE_CAPTAIN = 'vice_captain'
    ADMIN = 'admin'

    ALL = (UNVERIFIED, BASIC, PLAYER, CAPTAIN, VICE_CAPTAIN, ADMIN)


SETUP_STAGES: Tuple[int, ...] = (1, 2, 3, 4)
"""Account setup stages that must all be completed to become a player."""


class AccountSummary(NamedTuple):
    """Minimal account representation returned alongside tokens."""

    account_id: str
    public_id: str
    email: str
    role: str
    email_verified: bool
    setup_complete: bool
    setup_stages_completed: int


class Account(NamedTuple):
    """Represents a SQUADZ account and its credential state."""

    account_id: str
    """Internal identifier. Never shown to other users."""

    public_id: str
    """Human-shareable handle, e.g. ``SQZ-7KQ2M9XA``. Immutable."""

    email: str
    """The account's primary (and unique) e-mail address."""

    username: str
    """Unique slug-like username."""

    full_name: str
    """Display name."""

    origin: str
    """One of :attr:`IdentityOrigin.ALL`."""

    role: str = Role.UNVERIFIED
    """One of :attr:`Role.ALL`."""

    email_verified: bool = False

    apple_id: Optional[str] = None
    """Subject identifier issued by Apple, if :attr:`origin` is ``apple``."""

    google_id: Optional[str] = None
    """Subject identifier issued by Google, if :attr:`origin` is ``google``."""

    setup_stages: Tuple[bool, bool, bool, bool] = (False, False, False, False)
    """Completion flags for each of :data:`SETUP_STAGES`, in order."""

    failed_login_attempts: int = 0
    """Consecutive failed password attempts since the last success."""

    locked_until: Optional[datetime] = None
    """Password logins are refused until this time, if set."""

    token_version: int = 0
    """
    Incremented whenever all outstanding sessions must be invalidated.

    Refresh tokens embed the version at mint time and are rejected once the
    account's version advances.
    """

    created: Optional[datetime] = None

    @property
    def setup_stages_completed(self) -> int:
        """Number of setup stages completed."""
        return sum(1 for stage in self.setup_stages if stage)

    @property
    def setup_complete(self) -> bool:
        """Whether all setup stages are complete."""
        return all(self.setup_stages)

    @property
    def has_password(self) -> bool:
        """Whether the account can authenticate with a password."""
        return self.origin == IdentityOrigin.PASSWORD

    def is_locked(self, now: datetime) -> bool:
        """Determine whether password logins are suspended at ``now``."""
        return self.locked_until is not None and now < self.locked_until

    @property
    def summary(self) -> AccountSummary:
        """The :class:`AccountSummary` for this account."""
        return AccountSummary(
            account_id=self.account_id,
            public_id=self.public_id,
            email=self.email,
            role=self.role,
            email_verified=self.email_verified,
            setup_complete=self.setup_complete,
            setup_stages_completed=self.setup_stages_completed
        )


class TokenPair(NamedTuple):
    """A freshly minted access/refresh token pair."""

    access_token: str
    refresh_token: str


class AuthResult(NamedTuple):
    """Outcome of a successful authentication."""

    tokens: TokenPair
    account: AccountSummary

    is_new_account: Optional[bool] = None
    """Set by external sign-in: ``True`` for a signup, ``False`` for a login."""


class AccessClaims(NamedTuple):
    """Claims carried by a verified access token."""

    account_id: str
    email: str
    public_id: str
    role: str
    email_verified: bool
    setup_complete: bool
    setup_stages_completed: int
    issued_at: datetime
    expires: datetime


class RefreshClaims(NamedTuple):
    """Claims carried by a refresh token."""

    account_id: str
    token_version: int


class ExternalProfile(NamedTuple):
    """Identity asserted by an external provider, after verification."""

    provider: str
    """One of :attr:`IdentityOrigin.EXTERNAL`."""

    external_id: str
    """The provider's stable subject identifier for the user."""

    email: str

    display_name: Optional[str] = None
