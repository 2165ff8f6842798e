"""Verification of Sign in with Apple identity tokens."""

from typing import Any, Dict, Optional
import logging

import jwt
from jwt import PyJWKClient
from jwt.exceptions import InvalidTokenError, PyJWKClientConnectionError, \
    PyJWKClientError

from .. import util
from ..domain import ExternalProfile, IdentityOrigin
from ..exceptions import AuthError, VerifierUnavailable
from .base import IdentityVerifier, email_is_verified

logger = logging.getLogger(__name__)

APPLE_ISSUER = 'https://appleid.apple.com'
APPLE_KEYS_URL = 'https://appleid.apple.com/auth/keys'
KEY_LIFESPAN = 24 * 60 * 60
"""Seconds to keep Apple's signing keys before fetching them again."""


class AppleVerifier(IdentityVerifier):
    """
    Verifies Apple identity tokens against Apple's published signing keys.

    The keys are fetched from the JWKS endpoint and cached by
    :class:`PyJWKClient`.
    """

    provider = IdentityOrigin.APPLE

    def __init__(self, client_id: str, keys_url: str = APPLE_KEYS_URL,
                 issuer: str = APPLE_ISSUER, timeout: float = 10,
                 jwk_client: Optional[PyJWKClient] = None) -> None:
        self._client_id = client_id
        self._issuer = issuer
        self._jwk_client = jwk_client or PyJWKClient(
            keys_url, cache_keys=True, lifespan=KEY_LIFESPAN,
            timeout=timeout
        )

    def _claims(self, assertion: str) -> Dict[str, Any]:
        try:
            signing_key = self._jwk_client.get_signing_key_from_jwt(assertion)
        except PyJWKClientConnectionError as e:
            logger.error('Could not fetch Apple signing keys: %s', e)
            raise VerifierUnavailable('Apple is unavailable') from e
        except (PyJWKClientError, InvalidTokenError) as e:
            logger.debug('No usable signing key for Apple token: %s', e)
            raise AuthError('Invalid Apple token') from e
        try:
            claims: Dict[str, Any] = jwt.decode(
                assertion, signing_key.key, algorithms=['RS256'],
                audience=self._client_id, issuer=self._issuer,
                options={'require': ['exp', 'iat', 'sub']}
            )
        except InvalidTokenError as e:
            logger.debug('Apple token rejected: %s', e)
            raise AuthError('Invalid Apple token') from e
        return claims

    def verify(self, assertion: str) -> ExternalProfile:
        claims = self._claims(assertion)
        email = claims.get('email')
        if not email:
            raise AuthError('Apple token carries no e-mail address')
        if not email_is_verified(claims):
            logger.debug('Apple e-mail %s not verified',
                         util.mask_email(email))
            raise AuthError('Apple e-mail address is not verified')
        return ExternalProfile(
            provider=self.provider,
            external_id=claims['sub'],
            email=email.strip().lower()
        )
