"""Source and destination schemas plus row helpers shared by the tests."""
import datetime
import json

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text,
    func, insert, literal_column, select,
)

# ------------------------------------------------------------
# Source schema
# ------------------------------------------------------------
source_meta = MetaData()

source_users = Table(
    'users', source_meta,
    Column('id', Integer, primary_key=True),
    Column('username', String(512), nullable=False, unique=True),
)

source_notifications = Table(
    'notifications', source_meta,
    Column('uuid', String(36), primary_key=True),
    Column('type', String(255), nullable=False),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('subject', Text, nullable=False),
    Column('seen', Boolean, nullable=False, default=False),
    Column('deleted', Boolean, nullable=False, default=False),
    Column('date_created', DateTime, nullable=False),
    Column('message', Text, nullable=False),
)


# ------------------------------------------------------------
# Destination schema
# ------------------------------------------------------------
def build_destination_meta(payload_type=Text):
    meta = MetaData()
    Table(
        'users', meta,
        Column('id', Integer, primary_key=True),
        Column('username', String(512), nullable=False, unique=True),
    )
    Table(
        'notification_types', meta,
        Column('id', Integer, primary_key=True),
        Column('name', String(255), nullable=False, unique=True),
    )
    Table(
        'notifications', meta,
        Column('id', String(36), primary_key=True),
        Column('notification_type_id', Integer, ForeignKey('notification_types.id'), nullable=False),
        Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
        Column('subject', Text, nullable=False),
        Column('seen', Boolean, nullable=False),
        Column('deleted', Boolean, nullable=False),
        Column('time_created', DateTime, nullable=False),
        Column('incoming_json', payload_type, nullable=False),
        Column('outgoing_json', payload_type, nullable=False),
    )
    return meta


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def add_user(engine, username):
    with engine.begin() as conn:
        return conn.execute(insert(source_users).values(username=username)).inserted_primary_key[0]


def add_notification(engine, uuid, user_id, type='info', message=None, created=None,
                     subject='subject', seen=False, deleted=False):
    if message is None:
        message = {'message': {'text': 'hello'}}
    if not isinstance(message, str):
        message = json.dumps(message)
    if created is None:
        created = datetime.datetime(2019, 1, 1, 12, 0, 0)
    with engine.begin() as conn:
        conn.execute(insert(source_notifications).values(
            uuid=uuid, type=type, user_id=user_id, subject=subject, seen=seen,
            deleted=deleted, date_created=created, message=message,
        ))


def _table(engine, name):
    return Table(name, MetaData(), autoload_with=engine)


def count_rows(engine, table_name):
    table = _table(engine, table_name)
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar_one()


def fetch_rows(engine, table_name):
    """Return every row of a table as dictionaries, in insertion order."""
    table = _table(engine, table_name)
    with engine.connect() as conn:
        query = select(table).order_by(literal_column('rowid'))
        return [row._asdict() for row in conn.execute(query)]
