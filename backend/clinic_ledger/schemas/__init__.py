from clinic_ledger.schemas.audit_entry import AuditEntryResponse
from clinic_ledger.schemas.invoice import InvoiceDraftCreate, InvoiceDraftResponse
from clinic_ledger.schemas.invoice_line import (
    BillPendingResponse,
    CompensateLineRequest,
    ComputeLinesRequest,
    CostEstimateResponse,
    InvoiceLinePreview,
    InvoiceLineResponse,
)
from clinic_ledger.schemas.settlement import (
    ChannelTotalsResponse,
    SettlementCloseRequest,
    SettlementCorrectionCreate,
    SettlementStatusResponse,
)
from clinic_ledger.schemas.transaction import (
    TransactionCreate,
    TransactionResponse,
    TransactionVerify,
)
from clinic_ledger.schemas.treatment import (
    TreatmentCreate,
    TreatmentResponse,
    TreatmentStatusUpdate,
)

__all__ = [
    "AuditEntryResponse",
    "BillPendingResponse",
    "ChannelTotalsResponse",
    "CompensateLineRequest",
    "ComputeLinesRequest",
    "CostEstimateResponse",
    "InvoiceDraftCreate",
    "InvoiceDraftResponse",
    "InvoiceLinePreview",
    "InvoiceLineResponse",
    "SettlementCloseRequest",
    "SettlementCorrectionCreate",
    "SettlementStatusResponse",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionVerify",
    "TreatmentCreate",
    "TreatmentResponse",
    "TreatmentStatusUpdate",
]
