"""
Number parsing plus money and date formatting shared by the billing and
tracking code.
"""
import math
import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Optional, Union

Number = Union[int, float, Decimal]

CURRENCY_PLACES = {"INR": 2, "BHD": 3}

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_decimal(value) -> float:
    """Parse a form value the lenient way: leading numeric prefix, else 0.

    ``"12.5%"`` gives 12.5; ``""``, ``None`` and ``"abc"`` give 0.0. Never raises.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    match = _LEADING_NUMBER.match(str(value).strip())
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def format_fixed(value: Number, places: int = 2) -> str:
    """Fixed-point string of ``value`` with ``places`` decimals.

    Rounds the exact binary value half-up (ties away from zero), which is
    what browsers do for ``Number.toFixed``, so stored amounts match the
    figures admins already see on the web form. Infinities and NaN format
    as zero, and so does a negative value that rounds to zero.
    """
    d = value if isinstance(value, Decimal) else Decimal(value)
    if not d.is_finite():
        d = Decimal(0)
    with localcontext() as ctx:
        # Exact float expansions of large amounts run past the default 28 digits.
        ctx.prec = max(ctx.prec, d.adjusted() + places + 2)
        q = d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    if q == 0:
        q = abs(q)
    return f"{q:.{places}f}"


def _group_indian(digits: str) -> str:
    # 12345678 -> 1,23,45,678
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    parts = []
    while len(head) > 2:
        parts.insert(0, head[-2:])
        head = head[:-2]
    if head:
        parts.insert(0, head)
    return ",".join(parts + [tail])


def format_price(amount: Union[str, Number], currency: str) -> str:
    """Display string for an amount: ``₹1,23,456.00`` or ``BD 12.500``."""
    value = parse_decimal(amount)
    if currency == "BHD":
        return f"BD {format_fixed(value, CURRENCY_PLACES['BHD'])}"
    text = format_fixed(value, CURRENCY_PLACES["INR"])
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    whole, frac = text.split(".")
    return f"{sign}₹{_group_indian(whole)}.{frac}"


def format_date(value: Optional[Union[str, datetime]]) -> str:
    if not value:
        return "Not available"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value.strftime("%B %d, %Y, %I:%M %p")
