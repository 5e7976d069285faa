# analytics/reports/base.py
"""
Helpers shared by the report endpoints: date-range parsing and validation,
cache keys and per-user rate limiting.
"""
import hashlib
import json
from datetime import date
from typing import Optional, Tuple

from dateutil.parser import parse as parse_datetime
from django.core.cache import cache
from django.utils.dateparse import parse_date as django_parse_date


def _to_date(val: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD or any ISO datetime; None when missing or unparsable."""
    if not val:
        return None
    try:
        d = django_parse_date(val)
    except ValueError:
        d = None
    if d:
        return d
    try:
        return parse_datetime(val).date()
    except (ValueError, OverflowError, TypeError):
        return None


def parse_date_range(
    date_from: Optional[str],
    date_to: Optional[str],
    max_days: int = 366 * 2,
) -> Tuple[Optional[date], Optional[date], Optional[str]]:
    """
    Parse and validate date range parameters.

    Returns:
        Tuple of (date_from, date_to, error_message)
        If error_message is not None, the dates are invalid.
        Both dates None is valid and means no date filter.
    """
    if (date_from and _to_date(date_from) is None) or (date_to and _to_date(date_to) is None):
        return None, None, "Dates must be YYYY-MM-DD"

    df = _to_date(date_from)
    dt_ = _to_date(date_to)

    if (df is None) != (dt_ is None):
        return None, None, "Both date_from and date_to must be provided together, or neither"

    if df and dt_:
        if df > dt_:
            return None, None, "date_from must be before or equal to date_to"
        if (dt_ - df).days > max_days:
            return None, None, f"Date range cannot exceed {max_days} days"

    return df, dt_, None


def get_cache_key(report_type: str, user_id: int, params: dict) -> str:
    """
    Every parameter goes into the key, so a new filter or currency never
    reads a result cached for another one.
    """
    params_str = json.dumps(params, sort_keys=True, default=str)
    params_hash = hashlib.md5(params_str.encode()).hexdigest()[:12]
    return f"report:{report_type}:{user_id}:{params_hash}"


def rate_limit_report(user_id: int, limit: int = 60, window_seconds: int = 60) -> Tuple[bool, Optional[int]]:
    """
    Check rate limit for report requests.

    Returns:
        Tuple of (is_over_limit, retry_after_seconds)
    """
    key = f"rate_limit:reports:user:{user_id}"
    current = cache.get(key)

    if current is None:
        cache.set(key, 1, timeout=window_seconds)
        return False, None

    current = current + 1
    cache.set(key, current, timeout=window_seconds)

    if current > limit:
        # approximate: request times within the window are not tracked
        return True, window_seconds

    return False, None
