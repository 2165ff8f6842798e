"""
Helper script for generating an access token for an existing account.

Be sure that you are using the same secrets and database when running this
script as when you run the service.

.. code-block:: bash

   $ JWT_SECRET=foosecret JWT_REFRESH_SECRET=barsecret \
        DATABASE_URI=sqlite:///accounts.db squadz-generate-token
   Email address or public ID: SQZ-7KQ2M9XA

   eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9...

Use the token in your requests, in the header
``Authorization: Bearer [token]``.
"""

import click

from ..factory import create_issuer, create_store, get_application_config


@click.command()
@click.option('--identifier', prompt='Email address or public ID')
@click.option('--refresh', is_flag=True, default=False,
              help='Also print the refresh token.')
def generate_token(identifier: str, refresh: bool = False) -> None:
    """Generate an access token for dev/testing purposes."""
    config = get_application_config()
    store = create_store(config)
    issuer = create_issuer(config, store)
    with store.transaction() as session:
        db_account = store.get_by_identifier(session, identifier)
        if db_account is None:
            raise click.ClickException(f'No such account: {identifier}')
        tokens = issuer.mint(session, db_account.to_domain())
    click.echo(tokens.access_token)
    if refresh:
        click.echo(tokens.refresh_token)


if __name__ == '__main__':
    generate_token()
