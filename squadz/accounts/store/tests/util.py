"""Testing helpers."""

from typing import Generator
from contextlib import contextmanager

from ..credentials import CredentialStore


@contextmanager
def temporary_store(database_uri: str = 'sqlite:///:memory:',
                    create: bool = True, drop: bool = True) \
        -> Generator[CredentialStore, None, None]:
    """Provide an in-memory sqlite credential store for testing purposes."""
    store = CredentialStore.from_uri(database_uri)
    if create:
        store.create_all()
    try:
        yield store
    finally:
        if drop:
            store.drop_all()
        store.engine.dispose()
