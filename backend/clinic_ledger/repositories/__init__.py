from clinic_ledger.repositories.audit_entry_repository import AuditEntryRepository
from clinic_ledger.repositories.invoice_line_repository import InvoiceLineRepository
from clinic_ledger.repositories.invoice_repository import InvoiceRepository
from clinic_ledger.repositories.settlement_repository import ChannelTotals, SettlementRepository
from clinic_ledger.repositories.transaction_repository import TransactionRepository
from clinic_ledger.repositories.treatment_repository import TreatmentRepository

__all__ = [
    "AuditEntryRepository",
    "ChannelTotals",
    "InvoiceLineRepository",
    "InvoiceRepository",
    "SettlementRepository",
    "TransactionRepository",
    "TreatmentRepository",
]
