"""Daily settlement report rendering (HTML and PDF)."""

from __future__ import annotations

from decimal import Decimal
from html import escape
from string import Template
from typing import TYPE_CHECKING

from clinic_ledger.core.config import settings

if TYPE_CHECKING:
    from clinic_ledger.models.transaction import Transaction
    from clinic_ledger.services.settlement_engine import SettlementView

_REPORT_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
<head>
<style>
  body { font-family: Helvetica, Arial, sans-serif; font-size: 12px; color: #333; margin: 40px; }
  h1 { font-size: 22px; margin-bottom: 2px; }
  h2 { font-size: 15px; margin: 24px 0 8px; }
  .subtitle { color: #666; margin-bottom: 24px; }
  .meta td { padding: 2px 8px 2px 0; }
  table.grid { width: 100%; border-collapse: collapse; margin-bottom: 20px; }
  table.grid th { text-align: left; border-bottom: 2px solid #333; padding: 6px 8px; }
  table.grid td { padding: 6px 8px; border-bottom: 1px solid #ddd; }
  table.grid .right { text-align: right; }
  table.grid .total-row td { font-weight: bold; border-top: 2px solid #333; }
  .status { display: inline-block; padding: 4px 12px; border-radius: 4px; font-weight: bold;
             font-size: 11px; }
  .status-CLOSED { background: #e6f4ea; color: #137333; }
  .status-OPEN { background: #fce8e6; color: #c5221f; }
</style>
</head>
<body>
<h1>${clinic_name}</h1>
<div class="subtitle">Daily Operational &amp; Financial Settlement Report</div>
<table class="meta">
  <tr><td><strong>Clinic:</strong></td><td>${clinic_id}</td></tr>
  <tr><td><strong>Business Date:</strong></td><td>${business_date}</td></tr>
  <tr><td><strong>Status:</strong></td><td><span class="status status-${status}">${status}</span></td></tr>
  <tr><td><strong>Closed By:</strong></td><td>${closed_by}</td></tr>
  <tr><td><strong>Closed At:</strong></td><td>${closed_at}</td></tr>
</table>
<h2>Collections by Channel</h2>
<table class="grid">
  <thead><tr><th>Channel</th><th class="right">Amount</th></tr></thead>
  <tbody>
    <tr><td>Cash</td><td class="right">${total_cash}</td></tr>
    <tr><td>UPI</td><td class="right">${total_upi}</td></tr>
    <tr><td>Card</td><td class="right">${total_card}</td></tr>
    <tr class="total-row"><td>Total Revenue</td><td class="right">${total_revenue}</td></tr>
  </tbody>
</table>
<h2>Transactions (${transaction_count})</h2>
<table class="grid">
  <thead>
    <tr>
      <th>Reference</th>
      <th>Mode</th>
      <th class="right">Amount</th>
      <th>Verified</th>
      <th>Recorded By</th>
    </tr>
  </thead>
  <tbody>
    ${transaction_rows}
  </tbody>
</table>
</body>
</html>
""")

_TRANSACTION_ROW_TEMPLATE = Template(
    "<tr><td>${reference}</td><td>${channel}</td>"
    '<td class="right">${amount}</td><td>${verified}</td><td>${recorded_by}</td></tr>'
)


def format_minor_units(value: int | None) -> str:
    """Render minor units as a two-decimal amount, e.g. 123456 -> '1,234.56'."""
    if value is None:
        return "0.00"
    return f"{Decimal(value) / 100:,.2f}"


def _format_timestamp(value: object) -> str:
    if value is None:
        return ""
    return str(value)[:19]


class SettlementReportService:
    """Builds the daily settlement report for a clinic day."""

    def __init__(self, clinic_name: str | None = None):
        self.clinic_name = clinic_name or settings.CLINIC_NAME

    def render_html(self, view: SettlementView, transactions: list[Transaction]) -> str:
        """Render the report. Closed days show frozen totals, open days live ones."""
        totals = view.totals if view.totals is not None else view.live_totals
        rows = "\n    ".join(
            _TRANSACTION_ROW_TEMPLATE.substitute(
                reference=escape(str(t.reference or "-")),
                channel=escape(str(t.channel)),
                amount=format_minor_units(int(t.amount)),
                verified="Yes" if t.is_verified else "No",
                recorded_by=escape(str(t.recorded_by or "")),
            )
            for t in transactions
        )
        return _REPORT_TEMPLATE.substitute(
            clinic_name=escape(self.clinic_name.upper()),
            clinic_id=escape(view.clinic_id),
            business_date=view.business_date.isoformat(),
            status=view.status.value,
            closed_by=escape(view.closed_by or ""),
            closed_at=_format_timestamp(view.closed_at),
            total_cash=format_minor_units(totals.cash),
            total_upi=format_minor_units(totals.upi),
            total_card=format_minor_units(totals.card),
            total_revenue=format_minor_units(totals.total),
            transaction_count=len(transactions),
            transaction_rows=rows,
        )

    def render_pdf(self, view: SettlementView, transactions: list[Transaction]) -> bytes:
        """Generate the report as PDF bytes."""
        html = self.render_html(view, transactions)

        import weasyprint

        pdf_bytes: bytes = weasyprint.HTML(string=html).write_pdf()
        return pdf_bytes

    @staticmethod
    def filename(view: SettlementView) -> str:
        return f"settlement_{view.clinic_id}_{view.business_date.isoformat()}.pdf"
