"""
Request field parsing shared by the resource modules.
Every helper raises ValidationError, which routes turn into a 400.
"""

import re
from datetime import datetime

EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

HIGHLIGHT_STATUSES = ('draft', 'published', 'rejected')


class ValidationError(ValueError):
    """Invalid client input"""


def parse_id(value, label):
    """Record ids are positive integers."""
    try:
        record_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {label} ID format')
    if record_id <= 0:
        raise ValidationError(f'Invalid {label} ID format')
    return record_id


def parse_ids(raw, label):
    """Parse a comma separated id list such as '3,7,9'."""
    parts = [part.strip() for part in str(raw or '').split(',') if part.strip()]
    if not parts:
        raise ValidationError(f'No {label} IDs provided')
    ids = []
    for part in parts:
        record_id = parse_id(part, label)
        if record_id not in ids:
            ids.append(record_id)
    return ids


def parse_seq(value):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError('Sequence must be a whole number')
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError('Sequence must be a whole number')


def normalize_date(value):
    """Accept YYYY-MM-DD or a full ISO timestamp and keep the date part."""
    if value is None or value == '':
        return None
    date_part = str(value).split('T')[0].strip()
    try:
        datetime.strptime(date_part, '%Y-%m-%d')
    except ValueError:
        raise ValidationError('Invalid date format, expected YYYY-MM-DD')
    return date_part


def validate_email(email):
    return bool(email) and bool(EMAIL_REGEX.match(email))


def parse_bool(value, field):
    if not isinstance(value, bool):
        raise ValidationError(f'{field} must be a boolean')
    return value


def parse_status(value):
    if value is None or value == '':
        return 'draft'
    if value not in HIGHLIGHT_STATUSES:
        raise ValidationError(f"Invalid status, expected one of: {', '.join(HIGHLIGHT_STATUSES)}")
    return value


def string_list(value, field):
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f'{field} must be a list of strings')
    return [item.strip() for item in value if item.strip()]


def clean_text(value):
    if value is None:
        return None
    return str(value).strip()
