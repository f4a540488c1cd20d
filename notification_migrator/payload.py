"""
Rewriting of notification message payloads.

A message payload is a JSON object with a nested ``message`` object::

    {"message": {"text": "hi", ...}, ...}

The outgoing copy of the payload carries the notification id in
``message.id`` so that clients can acknowledge the notification.
"""
import copy
import json

from .errors import PayloadError

MESSAGE_KEY = 'message'
ID_KEY = 'id'


def parse_payload(raw, notification_id):
    """
    Decode a stored message payload and check its shape.

    :param raw: Payload as text, bytes or an already decoded dictionary.
    :param notification_id: Id of the notification, used in error messages.
    :return: The decoded payload.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise PayloadError(notification_id, f"not valid UTF-8: {e}") from e

    if isinstance(raw, str):
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise PayloadError(notification_id, f"not valid JSON: {e}") from e
    elif raw is None:
        raise PayloadError(notification_id, "payload is empty")
    else:
        document = raw

    if not isinstance(document, dict):
        raise PayloadError(notification_id, f"expected a JSON object, got {type(document).__name__}")
    if MESSAGE_KEY not in document:
        raise PayloadError(notification_id, f"missing '{MESSAGE_KEY}' object")
    if not isinstance(document[MESSAGE_KEY], dict):
        raise PayloadError(
            notification_id,
            f"'{MESSAGE_KEY}' must be a JSON object, got {type(document[MESSAGE_KEY]).__name__}",
        )

    return document


def build_outgoing_payload(incoming, notification_id):
    """Return a copy of ``incoming`` with the notification id set in ``message.id``."""
    outgoing = copy.deepcopy(parse_payload(incoming, notification_id))
    outgoing[MESSAGE_KEY][ID_KEY] = str(notification_id)
    return outgoing


def dump_payload(document):
    return json.dumps(document, separators=(',', ':'), ensure_ascii=False)
