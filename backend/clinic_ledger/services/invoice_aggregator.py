"""Invoice totals from priced lines."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from clinic_ledger.services.tariff_catalog import line_tax


class PricedLine(Protocol):
    unit_cost: Any
    quantity: Any
    tax_rate: Any


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: int
    tax: int
    total: int


def aggregate(lines: Iterable[PricedLine]) -> InvoiceTotals:
    """Sum line subtotals and per-line rounded taxes.

    Tax is rounded on each line, never on the aggregate, so an invoice total
    always equals the sum of what each line shows.
    """
    subtotal = 0
    tax = 0
    for line in lines:
        line_subtotal = int(line.unit_cost) * int(line.quantity)
        subtotal += line_subtotal
        tax += line_tax(line_subtotal, int(line.tax_rate))
    return InvoiceTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
