import logging
import time
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .config import CONNECT_RETRY_DELAY, CONNECT_TIMEOUT
from .errors import DatabaseConnectionError, MigrationError

logger = logging.getLogger(__name__)

POSTGRES_DRIVER = 'postgresql+psycopg2'


def normalize_url(url):
    """
    Map libpq style URIs (``postgres://``, ``postgresql://``) to the psycopg2 driver.

    Any other SQLAlchemy URL is returned unchanged.
    """
    for scheme in ('postgres://', 'postgresql://'):
        if url.startswith(scheme):
            return POSTGRES_DRIVER + '://' + url[len(scheme):]
    return url


def create_database_engine(url):
    engine = create_engine(normalize_url(url))
    logger.debug(f"Created engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def connect_with_retry(engine, timeout=CONNECT_TIMEOUT, delay=CONNECT_RETRY_DELAY):
    """
    Open a connection, retrying while the database is unavailable.

    :param engine: SQLAlchemy engine.
    :param timeout: Seconds to keep retrying before giving up.
    :param delay: Seconds to wait between attempts.
    :return: An open ``Connection``.
    """
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        attempt += 1
        try:
            return engine.connect()
        except OperationalError as e:
            if time.monotonic() + delay > deadline:
                raise DatabaseConnectionError(
                    f"unable to initialize the database after {attempt} attempt(s)"
                ) from e
            logger.warning(f"Database not reachable (attempt {attempt}), retrying in {delay}s: {e.orig}")
            time.sleep(delay)


# ------------------------------------------------------------
# Transactions
# ------------------------------------------------------------
@contextmanager
def source_transaction(connection):
    """
    Hold a transaction on the source database for a consistent snapshot.

    The transaction is read-only on PostgreSQL and is always rolled back.
    """
    if connection.dialect.name == 'postgresql':
        connection.execution_options(isolation_level='REPEATABLE READ', postgresql_readonly=True)
    transaction = connection.begin()
    try:
        yield connection
    finally:
        transaction.rollback()
        logger.debug("Source transaction rolled back.")


@contextmanager
def destination_transaction(connection):
    """Commit the destination transaction if the block succeeds, roll it back otherwise."""
    transaction = connection.begin()
    try:
        yield connection
    except BaseException:
        transaction.rollback()
        logger.info("Destination transaction rolled back.")
        raise
    try:
        transaction.commit()
    except SQLAlchemyError as e:
        raise MigrationError("destination database commit failed") from e
    logger.info("Destination transaction committed.")
