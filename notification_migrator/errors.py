"""Exceptions raised by the notification migration."""


class MigrationError(Exception):
    """Base class for every failure reported by the migration."""


class SchemaError(MigrationError):
    """A table required by the migration is missing."""


class DatabaseConnectionError(MigrationError):
    """A database could not be reached before the connection timeout."""


class DestinationNotEmptyError(MigrationError):
    def __init__(self, table):
        self.table = table
        super().__init__(f"the destination {table} table is not empty")


class PayloadError(MigrationError):
    """The message payload of a notification does not have the expected shape."""

    def __init__(self, notification_id, reason):
        self.notification_id = notification_id
        self.reason = reason
        super().__init__(f"invalid message payload for notification {notification_id}: {reason}")


class UnresolvedReferenceError(MigrationError):
    """A natural key of a notification has no row in the destination."""

    def __init__(self, kind, key, notification_id):
        self.kind = kind
        self.key = key
        self.notification_id = notification_id
        super().__init__(
            f"no destination {kind} found for {key!r} (notification {notification_id})"
        )


class MigrationStageError(MigrationError):
    """Wraps the failure of a single stage with the stage name."""

    def __init__(self, stage, cause):
        self.stage = stage
        super().__init__(f"database migration failed: {stage} failed: {cause}")


def format_error_chain(exc):
    """
    Render an exception and its causes as a single ``outer: inner: ...`` message.

    Messages already included in the outer text are not repeated.
    """
    parts = []
    current = exc
    while current is not None:
        text = str(current) or type(current).__name__
        if not parts or text not in parts[-1]:
            parts.append(text)
        current = current.__cause__
    return ": ".join(parts)
