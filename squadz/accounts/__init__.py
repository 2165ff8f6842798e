"""
Account credential and session lifecycle for SQUADZ.

Registration with e-mail verification, password and Apple/Google sign-in,
lockout after repeated failures, and rotating access/refresh tokens.

.. code-block:: python

   from squadz.accounts import factory

   service = factory.create_service()
   service.register('Jo Bloggs', 'jbloggs', 'jo@bloggs.com',
                    'S3cret!pw', 'S3cret!pw')
   result = service.verify_email('jo@bloggs.com', '123456')
   claims = service.verify_access(result.tokens.access_token)

"""

from . import domain, exceptions
from .issuer import TokenIssuer
from .service import AccountService, require_setup_complete
