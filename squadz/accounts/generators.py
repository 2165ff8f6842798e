"""Generators for identifiers, verification codes and reset tokens."""

from typing import Callable
from datetime import datetime, timedelta
import logging
import secrets
import string

from . import util

logger = logging.getLogger(__name__)

# Uppercase alphanumerics, less the look-alikes 0, O, 1 and I.
PUBLIC_ID_ALPHABET = ''.join(c for c in string.ascii_uppercase + string.digits
                             if c not in '0O1I')
PUBLIC_ID_LENGTH = 8


class IdentifierGenerator(object):
    """Generates unique public identifiers, e.g. ``SQZ-7KQ2M9XA``."""

    def __init__(self, prefix: str = 'SQZ',
                 length: int = PUBLIC_ID_LENGTH) -> None:
        self._prefix = prefix
        self._length = length

    def candidate(self) -> str:
        """Generate a public identifier without checking uniqueness."""
        suffix = ''.join(secrets.choice(PUBLIC_ID_ALPHABET)
                         for _ in range(self._length))
        return f'{self._prefix}-{suffix}'

    def generate(self, exists: Callable[[str], bool]) -> str:
        """
        Generate a public identifier that is not already taken.

        Parameters
        ----------
        exists : callable
            Returns ``True`` if a candidate identifier is already in use.

        Returns
        -------
        str

        """
        while True:
            public_id = self.candidate()
            if not exists(public_id):
                return public_id
            logger.debug('Public id collision, trying again')


class OneTimeCodeGenerator(object):
    """Generates short-lived numeric e-mail verification codes."""

    def __init__(self, digits: int = 6,
                 duration: timedelta = timedelta(minutes=3)) -> None:
        self._digits = digits
        self._duration = duration

    def generate(self) -> str:
        """Generate a uniformly random numeric code."""
        return str(secrets.randbelow(10 ** self._digits)).zfill(self._digits)

    def expiry(self) -> datetime:
        """Get the expiry time of a code generated now."""
        return util.now() + self._duration

    def is_expired(self, expires: datetime) -> bool:
        """Determine whether a code with this expiry time has expired."""
        return util.now() > expires


class ResetTokenGenerator(object):
    """Generates high-entropy password reset tokens."""

    def __init__(self, nbytes: int = 32,
                 duration: timedelta = timedelta(hours=1)) -> None:
        self._nbytes = nbytes
        self._duration = duration

    def generate(self) -> str:
        """Generate a hex-encoded random token."""
        return secrets.token_hex(self._nbytes)

    def expiry(self) -> datetime:
        """Get the expiry time of a token generated now."""
        return util.now() + self._duration

    def is_expired(self, expires: datetime) -> bool:
        """Determine whether a token with this expiry time has expired."""
        return util.now() > expires
