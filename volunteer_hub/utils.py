import re
import uuid
import logging
from datetime import datetime, timezone

from markdown import markdown

HFN_ID_PATTERN = re.compile(r'^[A-Za-z]{6}\d{3}$')
CLOCK_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def utcnow():
    """
    Returns the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def to_iso(moment):
    """
    Formats a datetime as the ISO-8601 string stored in the JSON documents.

    Args:
        moment (datetime): Aware or naive datetime. Naive values are taken as UTC.

    Returns:
        str: The ISO-8601 representation in UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def parse_timestamp(value):
    """
    Parses a stored timestamp into an aware UTC datetime.

    Accepts a trailing 'Z' as written by browsers and treats naive values
    (for example the output of a datetime-local input) as UTC.

    Args:
        value (str): The timestamp to parse.

    Returns:
        datetime: The parsed timestamp, or None if the value is empty or malformed.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logging.debug(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def timestamp_slug(moment=None):
    """
    Builds a filesystem-safe name fragment from a timestamp.

    Args:
        moment (datetime): The moment to encode. Defaults to now.

    Returns:
        str: The ISO timestamp with ':', '.' and '+' replaced by '-'.
    """
    text = to_iso(moment or utcnow())
    return re.sub(r'[:.+]', '-', text)


def generate_id():
    return uuid.uuid4().hex


def is_valid_hfn_id(value):
    """
    Checks a department registration identifier (6 letters followed by 3 digits).
    """
    return bool(value) and bool(HFN_ID_PATTERN.match(value))


def parse_clock(value):
    """
    Parses an 'HH:MM' wall-clock time.

    Args:
        value (str): The time of day, 24-hour clock.

    Returns:
        tuple: (hour, minute)

    Raises:
        ValueError: If the value is not a valid 'HH:MM' string.
    """
    match = CLOCK_PATTERN.match(value or '')
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    return int(match.group(1)), int(match.group(2))


def render_description(text):
    """
    Renders a job description written in Markdown to HTML.
    """
    return markdown(text or '')
