"""Time and hashing helpers."""

from datetime import datetime
import hashlib
import hmac

from pytz import UTC


def now() -> datetime:
    """Get the current time, in UTC."""
    return datetime.now(tz=UTC)


def epoch(t: datetime) -> int:
    """Convert a :class:`.datetime` to UNIX time, truncated to the second."""
    return int(t.timestamp())


def from_epoch(t: int) -> datetime:
    """Get a :class:`datetime` from an UNIX timestamp."""
    return datetime.fromtimestamp(t, tz=UTC)


def hash_token(raw: str) -> str:
    """
    Generate a hash of a high-entropy secret (refresh or reset token).

    These secrets are random enough that a fast digest is sufficient; only
    passwords get a slow hash.
    """
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()


def tokens_match(stored_hash: str, raw: str) -> bool:
    """Check a raw token against a hash from :func:`hash_token`."""
    return hmac.compare_digest(stored_hash, hash_token(raw))


def mask_email(email: str) -> str:
    """Obscure an e-mail address for log output."""
    local, _, domain = email.partition('@')
    return f'{local[:2]}***@{domain}'
