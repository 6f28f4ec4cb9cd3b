# bizhub/utils.py
import calendar
import re
from datetime import date, datetime, timedelta

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"]
FREQUENCIES = ("daily", "weekly", "biweekly", "monthly", "yearly")


class ValidationError(Exception):
    """Bad client input; the app turns it into a 400 response"""


def parse_date(s):
    """Try multiple date formats"""
    if not s:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    # ISO timestamps from JS clients carry a time part
    if 'T' in s:
        s = s.split('T')[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def require_date(data, field):
    value = parse_date(data.get(field))
    if value is None:
        raise ValidationError(f"Invalid or missing {field}")
    return value


def require_fields(data, fields):
    missing = [f for f in fields if data.get(f) is None or data.get(f) == '']
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_amount(value, field='amount'):
    """Parse a money amount, tolerating currency symbols and thousands separators"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    amount_str = re.sub(r'[^\d.-]', '', str(value or '').strip())
    try:
        return float(amount_str)
    except ValueError:
        raise ValidationError(f"Invalid {field} format")


def parse_int(value, default=None, field='value'):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")


def row_to_dict(row):
    """Convert sqlite3.Row to dict"""
    return dict(row) if row is not None else None


def month_bounds(year, month):
    """First and last day of a calendar month"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def add_months(d, months):
    """Shift a date by whole months, clamping to the end of shorter months"""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_date(d, frequency):
    """Next occurrence of a recurring entry"""
    if frequency == 'daily':
        return d + timedelta(days=1)
    if frequency == 'weekly':
        return d + timedelta(days=7)
    if frequency == 'biweekly':
        return d + timedelta(days=14)
    if frequency == 'monthly':
        return add_months(d, 1)
    if frequency == 'yearly':
        return add_months(d, 12)
    raise ValueError(f"Unknown frequency: {frequency}")
