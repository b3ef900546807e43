"""Utility helper functions"""

import uuid
from datetime import datetime, timezone


def utc_now():
    """Get current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def new_id():
    """Generate a new opaque identifier"""
    return str(uuid.uuid4())


def is_uuid(value):
    """Check whether value is a well-formed UUID string"""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
        return True
    except ValueError:
        return False


def to_timestamp(value):
    """
    Format datetime for storage.

    Always emits microseconds and a UTC offset so stored values sort
    lexicographically in time order.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='microseconds')


def parse_timestamp(value):
    """Parse stored timestamp back into an aware UTC datetime"""
    if value is None or isinstance(value, datetime):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
