"""Base class and helpers for external identity verifiers."""

from typing import Any, Dict

from ..domain import ExternalProfile


class IdentityVerifier(object):
    """Base class for external identity verifiers."""

    provider: str

    def verify(self, assertion: str) -> ExternalProfile:
        """
        Verify an identity assertion.

        Raises
        ------
        :class:`.AuthError`
            Raised if the assertion is not valid.
        :class:`.VerifierUnavailable`
            Raised if the provider could not be reached.

        """
        raise NotImplementedError('Must be implemented by a child class')


def email_is_verified(claims: Dict[str, Any]) -> bool:
    """Interpret an ``email_verified`` claim, which may be a string."""
    verified = claims.get('email_verified')
    if isinstance(verified, str):
        return verified.lower() == 'true'
    return verified is True
