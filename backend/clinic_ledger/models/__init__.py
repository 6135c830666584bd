from clinic_ledger.models.audit_entry import AuditEntry, AuditEvent
from clinic_ledger.models.invoice import InvoiceDraft, InvoiceNumberSeries
from clinic_ledger.models.invoice_line import InvoiceLine
from clinic_ledger.models.settlement import SettlementRecord, SettlementStatus, settlement_key
from clinic_ledger.models.transaction import PaymentChannel, Transaction
from clinic_ledger.models.treatment import ALLOWED_TRANSITIONS, TreatmentRecord, TreatmentStatus

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AuditEntry",
    "AuditEvent",
    "InvoiceDraft",
    "InvoiceLine",
    "InvoiceNumberSeries",
    "PaymentChannel",
    "SettlementRecord",
    "SettlementStatus",
    "Transaction",
    "TreatmentRecord",
    "TreatmentStatus",
    "settlement_key",
]
