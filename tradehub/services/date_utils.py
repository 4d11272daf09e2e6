# tradehub/services/date_utils.py
import logging
from datetime import datetime, date

import pytz

logger = logging.getLogger(__name__)

# Billing months roll over on Brisbane time unless configured otherwise
DEFAULT_BILLING_TIMEZONE = 'Australia/Brisbane'


def format_date_for_response(date_obj):
    """
    Format a date object for consistent API responses.

    Args:
        date_obj (date or datetime): The date to format

    Returns:
        str: ISO-8601 string, or None
    """
    if not date_obj:
        return None

    if isinstance(date_obj, datetime):
        return date_obj.isoformat()
    elif isinstance(date_obj, date):
        return date_obj.isoformat()

    return str(date_obj)


def parse_iso_date(date_str):
    """
    Parse an ISO-8601 date or datetime string into a date object
    without time component.

    Args:
        date_str (str): '2025-05-21', '2025-05-21T10:00:00' or '2025-05-21T10:00:00Z'

    Returns:
        date: Parsed date, or None for empty input

    Raises:
        ValueError: if the string is not ISO-8601
    """
    if not date_str:
        return None
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str

    value = str(date_str).strip()
    try:
        if 'T' in value:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
        return date.fromisoformat(value)
    except ValueError as e:
        logger.warning(f"Rejected non ISO-8601 date '{date_str}': {e}")
        raise ValueError(f"Invalid date format: {date_str}")


def billing_month_key(now=None, timezone_name=DEFAULT_BILLING_TIMEZONE):
    """
    Stable, sortable key for the calendar month a quote is billed in.

    Args:
        now (datetime, optional): Point in time; naive values are taken as UTC
        timezone_name (str): Timezone whose calendar decides the month

    Returns:
        str: 'YYYY-MM'
    """
    tz = pytz.timezone(timezone_name)
    if now is None:
        now = datetime.now(pytz.utc)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    local = now.astimezone(tz)
    return f"{local.year:04d}-{local.month:02d}"


def date_ranges_overlap(start_a, end_a, start_b, end_b):
    """
    True when two date ranges overlap.

    Either bound of either range may be None (open-ended). A range with no
    dates at all overlaps everything, so sparse tenders and unset filters
    never filter each other out.
    """
    if start_a is None and end_a is None:
        return True
    if start_b is None and end_b is None:
        return True

    if end_a is not None and start_b is not None and end_a < start_b:
        return False
    if end_b is not None and start_a is not None and end_b < start_a:
        return False
    return True
