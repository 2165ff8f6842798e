"""Password hashing."""

import logging

from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from .exceptions import PasswordAuthenticationFailed

logger = logging.getLogger(__name__)

_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
)


def hash_password(password: str) -> str:
    """Generate a secure (Argon2id) hash of a password."""
    return _hasher.hash(password)


def check_password(password: str, encrypted: str) -> None:
    """
    Check a password against an encrypted hash.

    Raises
    ------
    :class:`PasswordAuthenticationFailed`
        Raised if the password does not match, or the hash is unusable.

    """
    try:
        _hasher.verify(encrypted, password)
    except VerificationError as e:
        raise PasswordAuthenticationFailed('Incorrect password') from e
    except InvalidHashError as e:
        logger.error('Stored password hash is not a valid Argon2 hash')
        raise PasswordAuthenticationFailed('Incorrect password') from e


def needs_rehash(encrypted: str) -> bool:
    """Whether a hash was made with outdated parameters."""
    return _hasher.check_needs_rehash(encrypted)
