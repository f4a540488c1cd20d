import logging
from dataclasses import dataclass

from sqlalchemy import JSON, func, select
from sqlalchemy.exc import SQLAlchemyError

from .errors import (
    DestinationNotEmptyError, MigrationError, MigrationStageError, UnresolvedReferenceError
)
from .payload import build_outgoing_payload, dump_payload, parse_payload
from .schema import (
    DEST_NOTIFICATION_TYPES, DEST_NOTIFICATIONS, DEST_TABLES, DEST_USERS,
    NOTIFICATION_COLUMNS, SOURCE_NOTIFICATIONS, SOURCE_TABLES, SOURCE_USERS,
    reflect_tables,
)

logger = logging.getLogger(__name__)


@dataclass
class MigrationSummary:
    users: int = 0
    notification_types: int = 0
    notifications: int = 0


# ------------------------------------------------------------
# Destination checks
# ------------------------------------------------------------
def check_empty(destination, table):
    """
    Verify that a destination table has no rows.

    :param destination: Connection to the destination database.
    :param table: Reflected destination ``Table``.
    """
    count = destination.execute(select(func.count()).select_from(table)).scalar_one()
    if count > 0:
        logger.error(f"Destination table '{table.name}' already holds {count} row(s).")
        raise DestinationNotEmptyError(table.name)


def check_destination_empty(destination):
    """Verify that every destination table is empty before anything is written."""
    tables = reflect_tables(destination, DEST_TABLES)
    for name in DEST_TABLES:
        check_empty(destination, tables[name])


# ------------------------------------------------------------
# Bulk insertion of lookup rows
# ------------------------------------------------------------
def _bulk_insert(destination, table, column, values):
    """
    Insert every value into ``table.column`` with a single multi-row statement.

    An empty list of values inserts nothing.
    """
    if not values:
        logger.info(f"No rows to insert into '{table.name}'.")
        return 0

    destination.execute(table.insert().values([{column: value} for value in values]))
    logger.info(f"Inserted {len(values)} row(s) into '{table.name}'.")
    return len(values)


# ------------------------------------------------------------
# Users
# ------------------------------------------------------------
def migrate_users(source, destination):
    """
    Copy every username from the source users table to the destination.

    :param source: Connection to the source database.
    :param destination: Connection to the destination database.
    :return: Number of users inserted.
    """
    source_users = reflect_tables(source, [SOURCE_USERS])[SOURCE_USERS]
    dest_users = reflect_tables(destination, [DEST_USERS])[DEST_USERS]

    check_empty(destination, dest_users)

    usernames = source.execute(select(source_users.c.username)).scalars().all()
    logger.debug(f"Read {len(usernames)} username(s) from the source database.")

    return _bulk_insert(destination, dest_users, 'username', usernames)


# ------------------------------------------------------------
# Notification types
# ------------------------------------------------------------
def migrate_notification_types(source, destination):
    """
    Promote the distinct, lower-cased notification type names to the
    destination notification_types table.
    """
    source_notifications = reflect_tables(source, [SOURCE_NOTIFICATIONS])[SOURCE_NOTIFICATIONS]
    dest_types = reflect_tables(destination, [DEST_NOTIFICATION_TYPES])[DEST_NOTIFICATION_TYPES]

    check_empty(destination, dest_types)

    query = select(func.lower(source_notifications.c.type)).distinct()
    names = source.execute(query).scalars().all()
    logger.debug(f"Read {len(names)} distinct notification type(s) from the source database.")

    return _bulk_insert(destination, dest_types, 'name', names)


# ------------------------------------------------------------
# Identity maps
# ------------------------------------------------------------
def _load_id_map(destination, table, key_column):
    result = {}
    for row in destination.execute(select(table.c.id, table.c[key_column])):
        result[row[1]] = row[0]
    logger.debug(f"Loaded {len(result)} id mapping(s) for '{table.name}'.")
    return result


def load_user_id_map(destination):
    """Return a dictionary from username to destination user id."""
    table = reflect_tables(destination, [DEST_USERS])[DEST_USERS]
    return _load_id_map(destination, table, 'username')


def load_notification_type_id_map(destination):
    """Return a dictionary from notification type name to destination id."""
    table = reflect_tables(destination, [DEST_NOTIFICATION_TYPES])[DEST_NOTIFICATION_TYPES]
    return _load_id_map(destination, table, 'name')


def resolve_id(id_map, key, kind, notification_id):
    """
    Look up the destination id for a natural key.

    :param id_map: Dictionary built by one of the ``load_*_id_map`` functions.
    :param key: Username or notification type name.
    :param kind: Human readable name of the referenced entity.
    :param notification_id: Id of the notification being migrated.
    """
    try:
        return id_map[key]
    except KeyError:
        logger.error(f"Missing {kind} mapping for {key!r} (notification {notification_id}).")
        raise UnresolvedReferenceError(kind, key, notification_id) from None


# ------------------------------------------------------------
# Notifications
# ------------------------------------------------------------
def _payload_value(column, document, text):
    """Bind JSON columns with the decoded document and text columns with JSON text."""
    if isinstance(column.type, JSON):
        return document
    return text


def _source_notifications_query(source_users, source_notifications):
    n = source_notifications
    u = source_users
    return (
        select(
            n.c.uuid,
            func.lower(n.c.type).label('type'),
            u.c.username,
            n.c.subject,
            n.c.seen,
            n.c.deleted,
            n.c.date_created,
            n.c.message,
        )
        .select_from(n.join(u, n.c.user_id == u.c.id))
        .order_by(n.c.date_created, n.c.uuid)
    )


def migrate_notifications(source, destination):
    """
    Copy notifications in creation order, remapping the user and type
    references and adding the notification id to the outgoing payload.

    Rows are inserted one at a time to keep statements small.

    :param source: Connection to the source database.
    :param destination: Connection to the destination database.
    :return: Number of notifications inserted.
    """
    source_tables = reflect_tables(source, SOURCE_TABLES)
    dest_notifications = reflect_tables(destination, [DEST_NOTIFICATIONS])[DEST_NOTIFICATIONS]

    check_empty(destination, dest_notifications)

    type_id_for = load_notification_type_id_map(destination)
    user_id_for = load_user_id_map(destination)

    query = _source_notifications_query(source_tables[SOURCE_USERS], source_tables[SOURCE_NOTIFICATIONS])
    if source.dialect.supports_server_side_cursors:
        query = query.execution_options(stream_results=True)

    incoming_column = dest_notifications.c.incoming_json
    outgoing_column = dest_notifications.c.outgoing_json
    insert_stmt = dest_notifications.insert()

    count = 0
    result = source.execute(query)
    try:
        for row in result:
            notification_id = row.uuid

            notification_type_id = resolve_id(type_id_for, row.type, 'notification type', notification_id)
            user_id = resolve_id(user_id_for, row.username, 'user', notification_id)

            incoming = parse_payload(row.message, notification_id)
            outgoing = build_outgoing_payload(incoming, notification_id)

            incoming_text = row.message if isinstance(row.message, str) else dump_payload(incoming)

            values = dict(zip(NOTIFICATION_COLUMNS, (
                notification_id,
                notification_type_id,
                user_id,
                row.subject,
                row.seen,
                row.deleted,
                row.date_created,
                _payload_value(incoming_column, incoming, incoming_text),
                _payload_value(outgoing_column, outgoing, dump_payload(outgoing)),
            )))
            destination.execute(insert_stmt, values)
            count += 1
            logger.debug(f"Notification {notification_id}: type {row.type!r} -> {notification_type_id}, "
                         f"user {row.username!r} -> {user_id}")
    finally:
        result.close()

    logger.info(f"Inserted {count} notification(s).")
    return count


# ------------------------------------------------------------
# Orchestration
# ------------------------------------------------------------
STAGES = (
    ('user migration', 'users', "Migrating users...", migrate_users),
    ('notification type migration', 'notification_types', "Migrating notification types...", migrate_notification_types),
    ('notification migration', 'notifications', "Migrating notifications...", migrate_notifications),
)


def run_migration(source, destination):
    """
    Run every stage of the migration in order, stopping at the first failure.

    Every destination table is checked for rows before the first write, and
    each stage checks its own table again immediately before writing to it.
    Both connections must already be inside a transaction; committing or
    rolling back the destination is left to the caller.

    :param source: Connection to the source database.
    :param destination: Connection to the destination database.
    :return: ``MigrationSummary`` with the number of rows written per table.
    """
    logger.info("Validating the destination database...")
    try:
        check_destination_empty(destination)
    except (MigrationError, SQLAlchemyError) as e:
        logger.error(f"The destination validation failed: {e}")
        raise MigrationStageError('destination validation', e) from e

    summary = MigrationSummary()
    for stage, field, marker, migrate in STAGES:
        logger.info(marker)
        try:
            inserted = migrate(source, destination)
        except (MigrationError, SQLAlchemyError) as e:
            logger.error(f"The {stage} failed: {e}")
            raise MigrationStageError(stage, e) from e
        setattr(summary, field, inserted)

    logger.info(f"Migration complete: {summary.users} user(s), "
                f"{summary.notification_types} notification type(s), "
                f"{summary.notifications} notification(s).")
    return summary

