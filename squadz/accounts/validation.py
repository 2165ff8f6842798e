"""
Input validation for account lifecycle operations.

Each function checks the raw input for one operation and returns a
:class:`Validation`. Callers invoke :meth:`Validation.raise_for_errors` at
the top of the operation.
"""

from typing import Any, List, NamedTuple
import re

from .domain import SETUP_STAGES
from .exceptions import ValidationError

USERNAME = re.compile(r'^[a-zA-Z0-9_]+$')
EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CODE = re.compile(r'^[0-9]{6}$')
PASSWORD_SPECIALS = '@$!%*?&'
PASSWORD_MIN_LENGTH = 8

PASSWORDS_DO_NOT_MATCH = 'Passwords do not match'
WEAK_PASSWORD = ('Password must contain at least 1 uppercase, 1 lowercase, '
                 '1 number, and 1 special character')


class FieldError(NamedTuple):
    """A problem with a single input field."""

    field: str
    message: str


class Validation(NamedTuple):
    """Result of validating the input of an operation."""

    errors: List[FieldError]

    @property
    def ok(self) -> bool:
        """Whether the input is valid."""
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise :class:`ValidationError` if there are any errors."""
        if self.errors:
            raise ValidationError(self.errors[0].message, errors=self.errors)


def normalize_email(email: str) -> str:
    """Canonical form of an e-mail address for lookup and storage."""
    return email.strip().lower()


def _required(field: str, value: Any) -> List[FieldError]:
    if not isinstance(value, str) or not value.strip():
        return [FieldError(field, f'{field} is required')]
    return []


def _email(field: str, value: Any) -> List[FieldError]:
    errors = _required(field, value)
    if not errors and not EMAIL.match(value.strip()):
        errors.append(FieldError(field, 'Invalid e-mail address'))
    return errors


def _strong_password(field: str, value: Any) -> List[FieldError]:
    errors = _required(field, value)
    if errors:
        return errors
    if len(value) < PASSWORD_MIN_LENGTH:
        return [FieldError(field, f'Password must be at least '
                                  f'{PASSWORD_MIN_LENGTH} characters')]
    if not (any(c.islower() for c in value)
            and any(c.isupper() for c in value)
            and any(c.isdigit() for c in value)
            and any(c in PASSWORD_SPECIALS for c in value)):
        return [FieldError(field, WEAK_PASSWORD)]
    return []


def _matching(field: str, password: Any, confirm: Any) -> List[FieldError]:
    if password != confirm:
        return [FieldError(field, PASSWORDS_DO_NOT_MATCH)]
    return []


def registration(full_name: str, username: str, email: str, password: str,
                 confirm_password: str) -> Validation:
    """Validate a registration request."""
    errors = _matching('confirm_password', password, confirm_password)
    name_errors = _required('full_name', full_name)
    if not name_errors and len(full_name.strip()) < 2:
        name_errors.append(FieldError('full_name', 'Name is too short'))
    errors += name_errors
    username_errors = _required('username', username)
    if not username_errors:
        if len(username) < 3:
            username_errors.append(
                FieldError('username',
                           'Username must be at least 3 characters')
            )
        elif not USERNAME.fullmatch(username):
            username_errors.append(
                FieldError('username', 'Username must contain only letters, '
                                       'numbers, and underscores')
            )
    errors += username_errors
    errors += _email('email', email)
    errors += _strong_password('password', password)
    return Validation(errors)


def verification(email: str, code: str) -> Validation:
    """Validate an e-mail verification request."""
    errors = _email('email', email)
    if not isinstance(code, str) or not CODE.fullmatch(code):
        errors.append(FieldError('code', 'Code must be exactly 6 digits'))
    return Validation(errors)


def credentials(identifier: str, password: str) -> Validation:
    """Validate a login request."""
    return Validation(_required('identifier', identifier)
                      + _required('password', password))


def email_address(email: str) -> Validation:
    """Validate a request that only carries an e-mail address."""
    return Validation(_email('email', email))


def token(field: str, value: str) -> Validation:
    """Validate a request that carries an opaque token or assertion."""
    return Validation(_required(field, value))


def password_reset(reset_token: str, new_password: str,
                   confirm_password: str) -> Validation:
    """Validate a password reset request."""
    return Validation(
        _matching('confirm_password', new_password, confirm_password)
        + _required('reset_token', reset_token)
        + _strong_password('new_password', new_password)
    )


def password_change(current_password: str, new_password: str,
                    confirm_password: str) -> Validation:
    """Validate a password change request."""
    return Validation(
        _matching('confirm_password', new_password, confirm_password)
        + _required('current_password', current_password)
        + _strong_password('new_password', new_password)
    )


def setup_stage(stage: Any) -> Validation:
    """Validate a setup stage number."""
    if isinstance(stage, bool) or stage not in SETUP_STAGES:
        return Validation([FieldError('stage', 'Setup stage must be 1-4')])
    return Validation([])
