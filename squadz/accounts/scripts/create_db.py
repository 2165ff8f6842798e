"""Create the credential store tables for ``DATABASE_URI``."""

import click

from ..factory import get_application_config
from ..store import CredentialStore


@click.command()
@click.option('--drop', is_flag=True, default=False,
              help='Drop existing tables first. Destroys all accounts.')
def create_db(drop: bool = False) -> None:
    """Create all tables of the credential store."""
    config = get_application_config()
    store = CredentialStore.from_uri(config['DATABASE_URI'])
    if drop:
        click.confirm('Drop all tables?', abort=True)
        store.drop_all()
    store.create_all()
    click.echo(f"Created tables in {store.engine.url!r}")


if __name__ == '__main__':
    create_db()
