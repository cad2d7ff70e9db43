"""
Money and GST arithmetic for caterer bills.

Rounding is half-up to 2 decimal places on every line, and the bill totals
are sums of the already rounded line values:

    amount      = round2(quantity * rate)
    gst_amount  = round2(amount * gst_percentage / 100)
    total       = round2(sum(amount))
    total_gst   = round2(sum(gst_amount))
    grand_total = round2(total + total_gst)

Everything is Decimal. Floats are converted through str() so 0.1 stays 0.1.
Inputs are never rounded to fit: a quantity with more than 3 decimal places
or a rate, percentage or payment with more than 2 is a ValidationError.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from spice_ledger.core.exceptions import ValidationError


TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    """Computed amounts for one bill line."""
    amount: Decimal
    gst_amount: Decimal


@dataclass(frozen=True)
class BillTotals:
    """Computed totals for a whole bill."""
    total_amount: Decimal
    total_gst_amount: Decimal
    grand_total: Decimal


def round2(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert an API or stored value to a finite Decimal.

    Raises:
        ValidationError: for None, booleans, non-numeric strings, NaN and
            infinities.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", {"field": field, "value": repr(value)})

    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"{field} must be a number",
                {"field": field, "value": repr(value)},
            )

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", {"field": field, "value": str(value)})
    return result


MONEY_PLACES = 2
QUANTITY_PLACES = 3


def check_scale(value: Decimal, places: int, field: str) -> Decimal:
    """Raise ValidationError when `value` has more than `places` decimal places."""
    try:
        exact = value.quantize(Decimal(1).scaleb(-places)) == value
    except InvalidOperation:
        exact = False
    if not exact:
        raise ValidationError(
            f"{field} allows at most {places} decimal places",
            {"field": field, "value": str(value)},
        )
    return value


def to_money(value: Any, field: str = "amount") -> Decimal:
    """A money input: a finite Decimal with at most 2 decimal places, rounded form."""
    return round2(check_scale(to_decimal(value, field), MONEY_PLACES, field))


def calculate_line(quantity: Any, rate: Any, gst_percentage: Any = 0) -> LineAmounts:
    """
    Compute amount and GST for one line.

    quantity must be > 0 with at most 3 decimal places, rate >= 0 and
    gst_percentage within [0, 100], both with at most 2.
    """
    qty = to_decimal(quantity, "quantity")
    unit_rate = to_decimal(rate, "rate")
    gst_pct = to_decimal(gst_percentage, "gst_percentage")

    if qty <= ZERO:
        raise ValidationError("quantity must be greater than 0", {"field": "quantity", "value": str(qty)})
    if unit_rate < ZERO:
        raise ValidationError("rate must not be negative", {"field": "rate", "value": str(unit_rate)})
    if gst_pct < ZERO or gst_pct > HUNDRED:
        raise ValidationError(
            "gst_percentage must be between 0 and 100",
            {"field": "gst_percentage", "value": str(gst_pct)},
        )
    check_scale(qty, QUANTITY_PLACES, "quantity")
    check_scale(unit_rate, MONEY_PLACES, "rate")
    check_scale(gst_pct, MONEY_PLACES, "gst_percentage")

    amount = round2(qty * unit_rate)
    gst_amount = round2(amount * gst_pct / HUNDRED)
    return LineAmounts(amount=amount, gst_amount=gst_amount)


def calculate_totals(lines: Iterable[LineAmounts]) -> BillTotals:
    """Aggregate already rounded line amounts into bill totals."""
    total_amount = ZERO
    total_gst_amount = ZERO
    for line in lines:
        total_amount += line.amount
        total_gst_amount += line.gst_amount

    total_amount = round2(total_amount)
    total_gst_amount = round2(total_gst_amount)
    return BillTotals(
        total_amount=total_amount,
        total_gst_amount=total_gst_amount,
        grand_total=round2(total_amount + total_gst_amount),
    )
