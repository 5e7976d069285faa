# billing/services/recurring.py
from datetime import date
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from billing.choices import Frequency

_STEPS = {
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}

_MONTHS_PER_STEP = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


def _step(frequency: str) -> relativedelta:
    try:
        return _STEPS[Frequency(frequency)]
    except ValueError:
        raise ValueError(f"Unknown recurring frequency: {frequency}")


def occurrence(frequency: str, anchor: date, index: int) -> date:
    """
    The ``index``-th cycle date of a series starting at ``anchor``.

    Always computed from the anchor (never from the previous cycle) so a
    31st keeps landing on month end: 01-31, 02-29, 03-31, 04-30.
    """
    return anchor + _step(frequency) * index


def _first_index_after(frequency: str, anchor: date, after: date) -> int:
    if after < anchor:
        return 1
    if Frequency(frequency) == Frequency.WEEKLY:
        k = (after - anchor).days // 7
    else:
        months = (after.year - anchor.year) * 12 + (after.month - anchor.month)
        k = months // _MONTHS_PER_STEP[Frequency(frequency)]
    k = max(k, 1)
    while k > 1 and occurrence(frequency, anchor, k - 1) > after:
        k -= 1
    while occurrence(frequency, anchor, k) <= after:
        k += 1
    return k


def next_occurrence(
    frequency: str,
    anchor: date,
    end_date: Optional[date] = None,
    after: Optional[date] = None,
) -> Optional[date]:
    """
    First cycle date strictly after ``after`` (defaults to the anchor).

    Returns None once the series has ended, i.e. the next cycle would fall
    after ``end_date``.
    """
    after = after or anchor
    nxt = occurrence(frequency, anchor, _first_index_after(frequency, anchor, after))
    if end_date is not None and nxt > end_date:
        return None
    return nxt


def iter_occurrences(
    frequency: str,
    anchor: date,
    end_date: Optional[date] = None,
    until: Optional[date] = None,
) -> Iterator[date]:
    """Cycle dates after the anchor, up to ``end_date`` and ``until`` (inclusive)."""
    if end_date is None and until is None:
        raise ValueError("An open-ended series needs an 'until' date to iterate")
    k = 1
    while True:
        d = occurrence(frequency, anchor, k)
        if (end_date is not None and d > end_date) or (until is not None and d > until):
            return
        yield d
        k += 1
