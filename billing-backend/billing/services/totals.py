# billing/services/totals.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from common.exceptions import InvalidAmount

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def money(q: Decimal) -> Decimal:
    return q.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_amount(value: Any, name: str = "amount", *, default: Optional[Decimal] = None) -> Decimal:
    """
    Coerce ``value`` to a Decimal, rejecting negatives, NaN and infinities.

    ``None`` falls back to ``default`` when one is given (optional charges
    such as shipping), otherwise it is rejected.
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise InvalidAmount(f"{name} is required.", field=name)
    if isinstance(value, bool):
        raise InvalidAmount(f"{name} must be a number.", field=name, value=value)
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"{name} must be a number.", field=name, value=value)
    if not d.is_finite() or d < 0:
        raise InvalidAmount(f"{name} must be a finite, non-negative number.", field=name, value=value)
    return d


@dataclass
class LineIn:
    product_name: str
    quantity: Decimal
    rate: Decimal
    description: str = ""
    unit: str = ""

    REQUIRED = ("product_name", "quantity", "rate")
    OPTIONAL = ("description", "unit")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineIn":
        unknown = set(data) - set(cls.REQUIRED) - set(cls.OPTIONAL)
        if unknown:
            raise ValueError(f"Unknown line item field(s): {', '.join(sorted(unknown))}")
        missing = [k for k in cls.REQUIRED if k not in data]
        if missing:
            raise ValueError(f"Missing line item field(s): {', '.join(missing)}")
        return cls(
            product_name=str(data["product_name"]),
            quantity=to_amount(data["quantity"], "quantity"),
            rate=to_amount(data["rate"], "rate"),
            description=str(data.get("description") or ""),
            unit=str(data.get("unit") or ""),
        )


@dataclass
class LineOut:
    product_name: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


@dataclass
class TotalsOut:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_charge: Decimal
    total: Decimal
    currency: str
    lines: List[LineOut] = field(default_factory=list)


def line_amount(quantity: Any, rate: Any) -> Decimal:
    return to_amount(quantity, "quantity") * to_amount(rate, "rate")


def calculate(
    items: Iterable[LineIn],
    *,
    currency: str,
    discount_percentage: Any = None,
    discount_amount: Any = None,
    tax_percentage: Any = None,
    shipping_charge: Any = None,
) -> TotalsOut:
    """
    Document totals from its line items and charges.

      subtotal = sum(quantity * rate)
      discount = discount_percentage% of subtotal, or the fixed discount_amount
      tax      = tax_percentage% of (subtotal - discount)
      total    = subtotal - discount + tax + shipping

    A non-zero percentage wins over a fixed discount amount. Values are
    returned unrounded; ``rounded_totals()`` is applied when persisting/serializing.
    """
    if not currency:
        raise ValueError("currency is required")

    pct = to_amount(discount_percentage, "discount_percentage", default=ZERO)
    fixed = to_amount(discount_amount, "discount_amount", default=ZERO)
    tax_pct = to_amount(tax_percentage, "tax_percentage", default=ZERO)
    shipping = to_amount(shipping_charge, "shipping_charge", default=ZERO)

    lines: List[LineOut] = []
    subtotal = ZERO
    for item in items:
        amount = line_amount(item.quantity, item.rate)
        lines.append(LineOut(item.product_name, Decimal(item.quantity), Decimal(item.rate), amount))
        subtotal += amount

    if pct > 0:
        discount = subtotal * pct / HUNDRED
    else:
        discount = fixed

    tax = (subtotal - discount) * tax_pct / HUNDRED
    total = subtotal - discount + tax + shipping

    return TotalsOut(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        shipping_charge=shipping,
        total=total,
        currency=currency.upper(),
        lines=lines,
    )


def rounded_totals(t: TotalsOut) -> TotalsOut:
    """
    ``t`` in cents. The total is re-added from the rounded components so
    stored and displayed figures always sum up.
    """
    subtotal = money(t.subtotal)
    discount = money(t.discount_amount)
    tax = money(t.tax_amount)
    shipping = money(t.shipping_charge)
    return replace(
        t,
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        shipping_charge=shipping,
        total=subtotal - discount + tax + shipping,
    )


def serialize_totals(t: TotalsOut) -> Dict[str, Any]:
    r = rounded_totals(t)
    return {
        "currency": t.currency,
        "subtotal": str(r.subtotal),
        "discount_amount": str(r.discount_amount),
        "tax_amount": str(r.tax_amount),
        "shipping_charge": str(r.shipping_charge),
        "total": str(r.total),
        "lines": [
            {
                "product_name": ln.product_name,
                "quantity": str(ln.quantity),
                "rate": str(money(ln.rate)),
                "amount": str(money(ln.amount)),
            }
            for ln in t.lines
        ],
    }
