"""Database engine and transaction helpers."""

from typing import Generator
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session
from sqlalchemy.pool import StaticPool

from ..exceptions import Unavailable

logger = logging.getLogger(__name__)


def new_engine(database_uri: str) -> Engine:
    """Create an engine for the credential store."""
    if database_uri.startswith('sqlite') and ':memory:' in database_uri:
        # One shared connection, or each session would see an empty database.
        return create_engine(database_uri, poolclass=StaticPool,
                             connect_args={'check_same_thread': False})
    return create_engine(database_uri, pool_pre_ping=True)


def new_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


@contextmanager
def transaction(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for a unit of work against the credential store.

    Everything done with the yielded session is committed together when the
    block exits normally, and rolled back if the block raises.

    Raises
    ------
    :class:`Unavailable`
        Raised if the database cannot be reached.

    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except OperationalError as e:
        logger.error('Database unavailable, rolling back: %s', str(e))
        session.rollback()
        raise Unavailable('Database is temporarily unavailable') from e
    except Exception as e:
        logger.debug('Rolling back: %s', str(e))
        session.rollback()
        raise
    finally:
        session.close()


def is_available(engine: Engine) -> bool:
    """Check our connection to the database."""
    try:
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True
