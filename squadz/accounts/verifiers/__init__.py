"""
Verifiers for identity assertions issued by external providers.

A verifier checks a provider-signed identity token and returns the
:class:`.ExternalProfile` it asserts. Verifiers fail closed: anything that
is not positively a valid, fresh assertion for our audience with a verified
e-mail address raises :class:`.AuthError`.
"""

from .base import IdentityVerifier
from .apple import AppleVerifier
from .google import GoogleVerifier
