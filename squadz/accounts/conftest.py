"""
Special pytest fixture configuration file.

Provides a credential store and a fully wired service to all pytest tests
in this directory and sub directories.
"""

from unittest import mock

import pytest

from .domain import IdentityOrigin
from .issuer import TokenIssuer
from .notifications import Notifier
from .service import AccountService
from .store.tests.util import temporary_store
from .verifiers import IdentityVerifier


@pytest.fixture()
def store():
    with temporary_store() as store:
        yield store


@pytest.fixture()
def notifier():
    return mock.MagicMock(spec=Notifier)


@pytest.fixture()
def verifiers():
    return {provider: mock.MagicMock(spec=IdentityVerifier)
            for provider in IdentityOrigin.EXTERNAL}


@pytest.fixture()
def service(store, notifier, verifiers):
    issuer = TokenIssuer(store, 'foosecret', 'barsecret')
    return AccountService(store, issuer, notifier, verifiers)
