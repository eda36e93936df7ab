from datetime import datetime, timezone

from dateutil import parser as date_parser


def first_missing(data, required_fields):
    """Return the first required field that is absent or blank, else None."""
    for field in required_fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            return field
    return None


def parse_datetime(value):
    """Accept ISO strings (date or datetime) and datetime objects; naive UTC out."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = date_parser.isoparse(str(value))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_int(value, field):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an integer")


def to_float(value, field):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number")


def query_int(args, *names):
    """First of several query-string spellings (propertyId / property_id)."""
    for name in names:
        raw = args.get(name)
        if raw not in (None, ""):
            return to_int(raw, name)
    return None
