"""Functions for working with signed bearer tokens."""

from typing import Any, Dict, Optional

import jwt

from .exceptions import InvalidToken, ExpiredToken

ACCESS = 'access'
REFRESH = 'refresh'
ALGORITHM = 'HS256'


def encode(claims: Dict[str, Any], secret: str) -> str:
    """Encode claims as a signed JWT."""
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode(token: str, secret: str,
           token_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify a token and get its claims.

    Parameters
    ----------
    token : str
    secret : str
        The secret with which the token was signed.
    token_type : str
        If given, the ``type`` claim must have this value.

    Raises
    ------
    :class:`ExpiredToken`
        Raised if the signature is good but the token has expired.
    :class:`InvalidToken`
        Raised if the token is malformed, forged, or of the wrong type.

    """
    try:
        claims: Dict[str, Any] = jwt.decode(
            token, secret, algorithms=[ALGORITHM],
            options={'require': ['exp', 'iat', 'sub']}
        )
    except jwt.exceptions.ExpiredSignatureError as e:
        raise ExpiredToken('Token has expired') from e
    except jwt.exceptions.InvalidTokenError as e:
        raise InvalidToken('Not a valid token') from e
    if token_type is not None and claims.get('type') != token_type:
        raise InvalidToken(f'Not a valid {token_type} token')
    return claims


def decode_unverified(token: str) -> Dict[str, Any]:
    """
    Get the claims of a token without checking its signature or expiry.

    Raises
    ------
    :class:`InvalidToken`
        Raised if the token cannot be parsed at all.

    """
    try:
        claims: Dict[str, Any] = jwt.decode(
            token, options={'verify_signature': False, 'verify_exp': False}
        )
    except jwt.exceptions.InvalidTokenError as e:
        raise InvalidToken('Token is malformed') from e
    return claims
