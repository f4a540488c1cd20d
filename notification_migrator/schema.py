import logging

from sqlalchemy import MetaData
from sqlalchemy.exc import InvalidRequestError, NoSuchTableError

from .errors import SchemaError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Table names
# ------------------------------------------------------------
SOURCE_USERS = 'users'
SOURCE_NOTIFICATIONS = 'notifications'

DEST_USERS = 'users'
DEST_NOTIFICATION_TYPES = 'notification_types'
DEST_NOTIFICATIONS = 'notifications'

SOURCE_TABLES = (SOURCE_USERS, SOURCE_NOTIFICATIONS)
DEST_TABLES = (DEST_USERS, DEST_NOTIFICATION_TYPES, DEST_NOTIFICATIONS)

# Columns written to the destination notifications table, in insertion order.
NOTIFICATION_COLUMNS = (
    'id',
    'notification_type_id',
    'user_id',
    'subject',
    'seen',
    'deleted',
    'time_created',
    'incoming_json',
    'outgoing_json',
)


def reflect_tables(connection, names):
    """
    Reflect the given tables from a live connection.

    :param connection: SQLAlchemy connection, usually inside an open transaction.
    :param names: Names of the tables to reflect.
    :return: Dictionary from table name to ``Table``.
    """
    meta = MetaData()
    try:
        meta.reflect(bind=connection, only=list(names))
    except (NoSuchTableError, InvalidRequestError) as e:
        raise SchemaError(f"required table is missing: {e}") from e

    logger.debug(f"Reflected tables: {sorted(meta.tables.keys())}")
    return {name: meta.tables[name] for name in names}
