"""
Values -- monetary and percentage coercion helpers.

Responsibility:
    Single entry point for turning caller input into ``Decimal`` amounts and
    percentages. Amounts in the ledger are plain ``Decimal`` in the
    configured currency; there is no multi-currency arithmetic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    All monetary amounts are Decimal (never float). ``to_decimal`` rejects
    floats outright so binary rounding errors never enter the ledger.

Failure modes:
    - TypeError for float or unsupported input types.
    - ValueError for strings that are not valid numbers, NaN or infinity.
"""

from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """
    Coerce a caller-supplied number to ``Decimal``.

    Preconditions:
        - ``value`` is a Decimal, int, or numeric string. ``bool`` and
          ``float`` are rejected.

    Raises:
        TypeError: for float, bool or non-numeric types.
        ValueError: for unparsable strings, NaN or infinity.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{field} must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
    else:
        raise TypeError(f"{field} must be Decimal, int or str, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Invalid {field}: {value!r}")
    return result


def percent_of(total: Decimal, percentage: Decimal) -> Decimal:
    """``total * percentage / 100``."""
    return total * percentage / HUNDRED


def ratio_percent(part: Decimal, whole: Decimal) -> Decimal:
    """``part / whole * 100``, guarded to zero when ``whole <= 0``."""
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED
