"""Split a requested ticket quantity into package-covered and paid units"""

from dataclasses import dataclass
from numbers import Real
from typing import Optional

from ...exceptions import ValidationError


@dataclass(frozen=True)
class Allocation:
    covered: int
    paid: int
    price: float


def allocate(requested_qty: int, remaining: Optional[int], unit_price: float) -> Allocation:
    """
    covered = min(requested, remaining), paid = the rest, price = paid * unit_price.

    A missing ledger entry (remaining=None) behaves like an exhausted one.
    """
    if isinstance(requested_qty, bool) or not isinstance(requested_qty, int) or requested_qty <= 0:
        raise ValidationError(f"Requested quantity must be a positive integer, got {requested_qty!r}")
    if remaining is None:
        remaining = 0
    if isinstance(remaining, bool) or not isinstance(remaining, int) or remaining < 0:
        raise ValidationError(f"Remaining balance must be a non-negative integer, got {remaining!r}")
    if isinstance(unit_price, bool) or not isinstance(unit_price, Real) or unit_price < 0:
        raise ValidationError(f"Unit price must be a non-negative number, got {unit_price!r}")

    covered = min(requested_qty, remaining)
    paid = requested_qty - covered
    return Allocation(covered=covered, paid=paid, price=round(paid * float(unit_price), 2))
