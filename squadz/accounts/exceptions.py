"""Exceptions."""

from typing import List, Optional, Any
from datetime import datetime


class AccountsError(RuntimeError):
    """Base class for errors raised by the accounts package."""


class ValidationError(AccountsError):
    """
    Input is malformed or inconsistent.

    Always the client's fault, so it is safe to show the details.
    """

    def __init__(self, message: str, errors: Optional[List[Any]] = None) \
            -> None:
        super(ValidationError, self).__init__(message)
        self.errors = errors or []


class ConflictError(AccountsError):
    """A uniqueness constraint would be violated."""


class AuthError(AccountsError):
    """
    Credentials or token are not valid.

    Messages are deliberately generic; distinct causes share one message.
    """


class LockedError(AccountsError):
    """The account is temporarily suspended after repeated failures."""

    def __init__(self, message: str, unlock_time: datetime) -> None:
        super(LockedError, self).__init__(message)
        self.unlock_time = unlock_time


class ExpiredError(AccountsError):
    """A time-bounded artifact (code or token) is past its window."""


class NoSuchAccount(AccountsError):
    """Account does not exist."""


class SetupIncomplete(AccountsError):
    """Account has not completed all setup stages."""


class NotificationFailed(AccountsError):
    """Failed to deliver a notification."""


class VerifierUnavailable(AccountsError):
    """Could not reach an external identity provider."""


class Unavailable(AccountsError):
    """The credential store is temporarily unavailable."""


class PasswordAuthenticationFailed(RuntimeError):
    """Password is not correct."""


class InvalidToken(RuntimeError):
    """Token is malformed, forged or of the wrong type."""


class ExpiredToken(InvalidToken):
    """Token signature is good but it has expired."""
