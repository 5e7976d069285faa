# billing/services/numbering.py
import re
from datetime import date
from typing import Iterable, Optional

from billing.choices import NumberingStrategy

# PREFIX-0007 or PREFIX-20240131-007. Eight bare digits read as a date, not a sequence.
_ISSUED = re.compile(r"(?:\d{8}-)?(\d{1,7})")


def parse_sequence(number: Optional[str], prefix: str) -> Optional[int]:
    """
    Sequence of a number this module issued with ``prefix``
    (INV-0007 -> 7, INV-20240131-003 -> 3). Manual numbers that merely
    share the prefix, such as INV-20240131 or INV-7A, give None.
    """
    if not number or not number.startswith(f"{prefix}-"):
        return None
    m = _ISSUED.fullmatch(number[len(prefix) + 1:])
    return int(m.group(1)) if m else None


def next_document_number(
    prefix: str,
    strategy: str = NumberingStrategy.AUTO,
    last_number: Optional[str] = None,
    today: Optional[date] = None,
    manual_number: Optional[str] = None,
) -> str:
    """
    auto   -> INV-0001, INV-0002, ...
    date   -> INV-20240131-001 (sequence continues from the last number)
    manual -> the caller's number, stripped

    Uniqueness is not checked here; the per-user unique constraint on the
    document table is the authority.
    """
    strategy = NumberingStrategy(strategy)
    if strategy == NumberingStrategy.MANUAL:
        number = (manual_number or "").strip()
        if not number:
            raise ValueError("A document number is required for manual numbering")
        return number

    seq = (parse_sequence(last_number, prefix) or 0) + 1
    if strategy == NumberingStrategy.DATE:
        if today is None:
            raise ValueError("today is required for date based numbering")
        return f"{prefix}-{today:%Y%m%d}-{seq:03d}"
    return f"{prefix}-{seq:04d}"


def last_issued_number(numbers: Iterable[str], prefix: str) -> Optional[str]:
    """Highest-sequence number among ``numbers`` issued with ``prefix``."""
    best_seq, best = 0, None
    for number in numbers:
        seq = parse_sequence(number, prefix) or 0
        if seq > best_seq:
            best_seq, best = seq, number
    return best
