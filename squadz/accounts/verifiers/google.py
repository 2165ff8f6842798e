"""Verification of Google Sign-In identity tokens."""

from typing import Any, Dict, Generator, Optional
from contextlib import contextmanager
from threading import RLock
import logging

import cachecontrol
import requests
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import id_token

from .. import util
from ..domain import ExternalProfile, IdentityOrigin
from ..exceptions import AuthError, VerifierUnavailable
from .base import IdentityVerifier, email_is_verified

logger = logging.getLogger(__name__)

_sess = None
"""Session with caching of Google's certificates."""

_lock = RLock()
"""Lock for using the session, which is not thread safe."""


@contextmanager
def locked_session() -> Generator[requests.Session, None, None]:
    """Get a session with caching of certs from Google."""
    global _sess
    with _lock:
        if not _sess:
            _sess = cachecontrol.CacheControl(requests.session())
        yield _sess


class TimedRequest(Request):
    """Transport that applies our timeout to every certificate fetch."""

    def __init__(self, session: requests.Session, timeout: float) -> None:
        super(TimedRequest, self).__init__(session=session)
        self._timeout = timeout

    def __call__(self, url: str, method: str = 'GET', body: Any = None,
                 headers: Any = None, timeout: Optional[float] = None,
                 **kwargs: Any) -> Any:
        return super(TimedRequest, self).__call__(
            url, method=method, body=body, headers=headers,
            timeout=timeout or self._timeout, **kwargs
        )


class GoogleVerifier(IdentityVerifier):
    """Verifies Google identity tokens with ``google-auth``."""

    provider = IdentityOrigin.GOOGLE

    def __init__(self, client_id: str, timeout: float = 10) -> None:
        self._client_id = client_id
        self._timeout = timeout

    def _claims(self, assertion: str) -> Dict[str, Any]:
        with locked_session() as session:
            request = TimedRequest(session, self._timeout)
            try:
                claims: Dict[str, Any] = id_token.verify_oauth2_token(
                    assertion, request, self._client_id
                )
            except google_exceptions.TransportError as e:
                logger.error('Could not fetch Google certificates: %s', e)
                raise VerifierUnavailable('Google is unavailable') from e
            except (ValueError, google_exceptions.GoogleAuthError) as e:
                logger.debug('Google token rejected: %s', e)
                raise AuthError('Invalid Google token') from e
        if not claims:
            raise AuthError('Invalid Google token')
        return claims

    def verify(self, assertion: str) -> ExternalProfile:
        claims = self._claims(assertion)
        email = claims.get('email')
        if not email or not claims.get('sub'):
            raise AuthError('Google token carries no identity')
        if not email_is_verified(claims):
            logger.debug('Google e-mail %s not verified',
                         util.mask_email(email))
            raise AuthError('Google e-mail address is not verified')
        return ExternalProfile(
            provider=self.provider,
            external_id=claims['sub'],
            email=email.strip().lower(),
            display_name=claims.get('name') or None
        )
