"""
Internal utility functions.

The percent-encoding used here is the RFC 3986 flavour OAuth 1.0a expects:
everything but ``A-Z a-z 0-9 - . _ ~`` is escaped, which means ``!*'()``
are escaped too even though ``encodeURIComponent`` style encoders leave
them alone.
"""

import random
import string
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, unquote

from .errors import TwitterError

ALPHANUMERIC = string.ascii_letters + string.digits
TWITTER_START_EPOCH = 1288834974657
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def percent_encode(value):
    """Percent-encode `value` for OAuth signature and header use."""
    if not isinstance(value, (str, bytes)):
        value = str(value)
    return quote(value, safe='')


def actually_bytes(stringy):
    if type(stringy) == bytes:
        pass
    elif type(stringy) != str:
        stringy = str(stringy)
    if type(stringy) == str:
        stringy = stringy.encode("utf-8")
    return stringy


def deparam(query_string):
    """
    Parse a query string into a dict. Keys seen more than once collect
    their values in a list, in the order they appear.
    """
    data = {}
    for couple in query_string.split('&'):
        key, _, value = couple.partition('=')
        value = unquote(value)
        if key in data:
            if not isinstance(data[key], list):
                data[key] = [data[key]]
            data[key].append(value)
        else:
            data[key] = value
    return data


def deparam_url(url):
    base, sep, query_string = url.partition('?')
    if not sep:
        return {}
    return deparam(query_string)


def base_url(url):
    return url.split('?')[0]


def stringify_query(query):
    """Drop unset parameters and turn the remaining values into strings."""
    formatted = {}
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        elif isinstance(value, (list, tuple)):
            value = [v if isinstance(v, str) else str(v) for v in value]
        elif not isinstance(value, str):
            value = str(value)
        formatted[key] = value
    return formatted


def is_oauth_serializable(value):
    """Binary payloads and file handles never take part in a signature."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return False
    return not hasattr(value, 'read')


def random_string(length, alphabet=ALPHANUMERIC):
    return ''.join(random.choice(alphabet) for _ in range(length))


def snowflake_from_date(date_string):
    """
    Convert an ISO 8601 date to the smallest tweet id that could have been
    created at that instant.
    """
    try:
        date = datetime.fromisoformat(date_string.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        raise TwitterError(
            "Unable to convert start_time/end_time to a valid date. "
            "An ISO 8601 DateTime is expected, got %r" % (date_string,))
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    timestamp_ms = (date - UNIX_EPOCH) // timedelta(milliseconds=1)
    return str((timestamp_ms - TWITTER_START_EPOCH) << 22)


__all__ = [
    "percent_encode", "deparam", "deparam_url", "stringify_query",
    "is_oauth_serializable", "random_string", "snowflake_from_date"]
