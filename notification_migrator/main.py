import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from .config import CONNECT_TIMEOUT, LOG_FILE, LOG_LEVEL, configure_logging
from .database import (
    connect_with_retry, create_database_engine, destination_transaction, source_transaction
)
from .errors import MigrationError, format_error_chain
from .migration import run_migration

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Command line
# ------------------------------------------------------------
class ArgumentParser(argparse.ArgumentParser):
    """Report usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def parse_command_line(argv=None):
    parser = ArgumentParser(
        prog='notification-migrator',
        description="Migrate users, notification types and notifications to the new notifications database.",
        add_help=False,
    )
    parser.add_argument('-h', '-?', '--help', action='help', help="show this help message and exit")
    parser.add_argument('-s', '--source', required=True,
                        help="the connection URI for the source database")
    parser.add_argument('-d', '--dest', required=True,
                        help="the connection URI for the destination database")
    parser.add_argument('--connect-timeout', type=float, default=CONNECT_TIMEOUT,
                        help=f"seconds to wait for each database to become available (default: {CONNECT_TIMEOUT})")
    parser.add_argument('--log-level', default=LOG_LEVEL,
                        help=f"logging level (default: {LOG_LEVEL})")
    parser.add_argument('--log-file', default=LOG_FILE,
                        help=f"log file path, empty to disable (default: {LOG_FILE})")
    return parser.parse_args(argv)


def _open(label, url, timeout):
    """Create an engine and connect to it, prefixing failures with ``label``."""
    try:
        engine = create_database_engine(url)
        return engine, connect_with_retry(engine, timeout=timeout)
    except (SQLAlchemyError, MigrationError, ImportError) as e:
        raise MigrationError(f"{label} database: {format_error_chain(e)}") from e


def migrate(source_url, dest_url, connect_timeout=CONNECT_TIMEOUT):
    """
    Connect to both databases and run the migration in a single transaction each.

    :param source_url: Connection URI of the source database.
    :param dest_url: Connection URI of the destination database.
    :param connect_timeout: Seconds to keep retrying each connection.
    :return: ``MigrationSummary`` of the committed migration.
    """
    source_engine, source_conn = _open('source', source_url, connect_timeout)
    try:
        dest_engine, dest_conn = _open('destination', dest_url, connect_timeout)
        try:
            with source_transaction(source_conn), destination_transaction(dest_conn):
                return run_migration(source_conn, dest_conn)
        finally:
            dest_conn.close()
            dest_engine.dispose()
            logger.info("Destination connection closed.")
    finally:
        source_conn.close()
        source_engine.dispose()
        logger.info("Source connection closed.")


def main(argv=None):
    args = parse_command_line(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        migrate(args.source, args.dest, connect_timeout=args.connect_timeout)
    except (MigrationError, SQLAlchemyError) as e:
        print(format_error_chain(e), file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
