"""Composes an :class:`.AccountService` from configuration."""

from typing import Any, Dict, Optional
from datetime import timedelta
import logging

from . import config as default_config
from .app_logging import setup_logger
from .generators import IdentifierGenerator, OneTimeCodeGenerator, \
    ResetTokenGenerator
from .issuer import TokenIssuer
from .notifications import MailNotifier, Notifier
from .service import AccountService
from .store import CredentialStore
from .verifiers import AppleVerifier, GoogleVerifier, IdentityVerifier

logger = logging.getLogger(__name__)


def get_application_config(overrides: Optional[Dict[str, Any]] = None) \
        -> Dict[str, Any]:
    """
    Get the service configuration.

    Values come from :mod:`.config` (and so from the environment), with
    ``overrides`` taking precedence key by key.
    """
    values = {key: getattr(default_config, key)
              for key in dir(default_config) if key.isupper()}
    if overrides:
        values.update(overrides)
    return values


def create_store(config: Dict[str, Any]) -> CredentialStore:
    """Create the credential store, and its tables if configured to."""
    store = CredentialStore.from_uri(config['DATABASE_URI'])
    if config.get('CREATE_DB'):
        store.create_all()
    return store


def create_issuer(config: Dict[str, Any],
                  store: CredentialStore) -> TokenIssuer:
    """Create the token issuer."""
    if config['JWT_SECRET'] == config['JWT_REFRESH_SECRET']:
        raise ValueError('Access and refresh tokens need distinct secrets')
    return TokenIssuer(
        store,
        secret=config['JWT_SECRET'],
        refresh_secret=config['JWT_REFRESH_SECRET'],
        access_duration=timedelta(minutes=int(config['ACCESS_TOKEN_MINUTES'])),
        refresh_duration=timedelta(days=int(config['REFRESH_TOKEN_DAYS']))
    )


def create_verifiers(config: Dict[str, Any]) -> Dict[str, IdentityVerifier]:
    """Create a verifier for each provider that has a client id."""
    timeout = float(config['VERIFIER_TIMEOUT'])
    verifiers: Dict[str, IdentityVerifier] = {}
    if config.get('APPLE_CLIENT_ID'):
        verifiers[AppleVerifier.provider] = AppleVerifier(
            config['APPLE_CLIENT_ID'],
            keys_url=config['APPLE_KEYS_URL'],
            issuer=config['APPLE_ISSUER'],
            timeout=timeout
        )
    if config.get('GOOGLE_CLIENT_ID'):
        verifiers[GoogleVerifier.provider] = GoogleVerifier(
            config['GOOGLE_CLIENT_ID'], timeout=timeout
        )
    if not verifiers:
        logger.warning('No external identity providers are configured')
    return verifiers


def create_notifier(config: Dict[str, Any]) -> Notifier:
    """Create the SMTP notifier."""
    return MailNotifier(
        host=config['SMTP_HOST'],
        port=int(config['SMTP_PORT']),
        sender=config['MAIL_SENDER'],
        timeout=float(config['SMTP_TIMEOUT'])
    )


def create_service(config: Optional[Dict[str, Any]] = None,
                   notifier: Optional[Notifier] = None) -> AccountService:
    """
    Initialize and configure the account service.

    Parameters
    ----------
    config : dict
        As returned by :func:`get_application_config`. If not given, the
        configuration is read from the environment.
    notifier : :class:`.Notifier`
        Replaces the SMTP notifier, e.g. in tests.

    Returns
    -------
    :class:`.AccountService`

    """
    if config is None:
        config = get_application_config()
    setup_logger(config['LOG_LEVEL'], json=bool(config['LOG_JSON']))

    store = create_store(config)
    return AccountService(
        store,
        create_issuer(config, store),
        notifier or create_notifier(config),
        create_verifiers(config),
        identifiers=IdentifierGenerator(prefix=config['PUBLIC_ID_PREFIX']),
        codes=OneTimeCodeGenerator(
            duration=timedelta(minutes=int(config['OTP_EXPIRY_MINUTES']))
        ),
        reset_tokens=ResetTokenGenerator(
            duration=timedelta(
                minutes=int(config['RESET_TOKEN_EXPIRY_MINUTES'])
            )
        ),
        max_failed_logins=int(config['MAX_FAILED_LOGINS']),
        lockout_duration=timedelta(minutes=int(config['LOCKOUT_MINUTES']))
    )
