"""
The credential store.

This is the single source of truth for accounts, lockout counters, token
versions and outstanding refresh-token records, and the single
synchronization point between concurrent requests: everything that must
happen atomically happens inside one :meth:`CredentialStore.transaction`.
"""

from . import models, util
from .credentials import CredentialStore
