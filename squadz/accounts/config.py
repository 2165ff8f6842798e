"""Accounts configuration."""
import secrets
import os

#################### Token signing ####################
JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Secret used to sign access tokens."""

JWT_REFRESH_SECRET = os.environ.get('JWT_REFRESH_SECRET',
                                    secrets.token_urlsafe(16))
"""Secret used to sign refresh tokens. Must differ from `JWT_SECRET`."""

ACCESS_TOKEN_MINUTES = os.environ.get('ACCESS_TOKEN_MINUTES', '15')
"""Lifetime of an access token."""

REFRESH_TOKEN_DAYS = os.environ.get('REFRESH_TOKEN_DAYS', '30')
"""Lifetime of a refresh token, and of its stored session record."""


#################### Credential store ####################
DATABASE_URI = os.environ.get('DATABASE_URI', 'sqlite:///accounts.db')
"""SQLAlchemy URI for the credential store."""

CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))
"""Create tables on startup if they do not exist."""


#################### Account lifecycle ####################
PUBLIC_ID_PREFIX = os.environ.get('PUBLIC_ID_PREFIX', 'SQZ')
"""Prefix of generated public identifiers, e.g. ``SQZ-7KQ2M9XA``."""

OTP_EXPIRY_MINUTES = os.environ.get('OTP_EXPIRY_MINUTES', '3')
"""How long an e-mail verification code remains valid."""

RESET_TOKEN_EXPIRY_MINUTES = os.environ.get('RESET_TOKEN_EXPIRY_MINUTES',
                                            '60')
"""How long a password reset token remains valid."""

MAX_FAILED_LOGINS = os.environ.get('MAX_FAILED_LOGINS', '5')
"""Consecutive failed password attempts that trigger a lockout."""

LOCKOUT_MINUTES = os.environ.get('LOCKOUT_MINUTES', '15')
"""Duration of a lockout."""


#################### External identity providers ####################
APPLE_CLIENT_ID = os.environ.get('APPLE_CLIENT_ID', '')
"""Expected audience of Apple identity tokens (the app's Services ID)."""

APPLE_ISSUER = os.environ.get('APPLE_ISSUER', 'https://appleid.apple.com')

APPLE_KEYS_URL = os.environ.get('APPLE_KEYS_URL',
                                'https://appleid.apple.com/auth/keys')
"""JWKS endpoint with Apple's token signing keys."""

GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID', '')
"""Expected audience of Google identity tokens."""

VERIFIER_TIMEOUT = os.environ.get('VERIFIER_TIMEOUT', '10')
"""Seconds to wait for an identity provider before giving up."""


#################### Notifications ####################
SMTP_HOST = os.environ.get('SMTP_HOST', 'localhost')
SMTP_PORT = os.environ.get('SMTP_PORT', '25')
SMTP_TIMEOUT = os.environ.get('SMTP_TIMEOUT', '30')
MAIL_SENDER = os.environ.get('MAIL_SENDER', 'no-reply@squadz.app')
"""`From` address of account e-mails."""


#################### Logging ####################
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_JSON = bool(int(os.environ.get('LOG_JSON', 1)))
"""Emit JSON log lines instead of plain text."""
