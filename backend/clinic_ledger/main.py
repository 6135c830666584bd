import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_ledger.core.config import settings
from clinic_ledger.core.errors import ConcurrencyError, LedgerError, StateError, ValidationError
from clinic_ledger.routers import (
    audit_entries,
    billing,
    invoices,
    settlements,
    treatments,
)

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Treatments", "description": "Record clinical treatments and move them to completion."},
    {"name": "Billing", "description": "Price completed treatments into invoice lines."},
    {"name": "Invoices", "description": "Aggregate invoice lines into numbered invoices."},
    {"name": "Settlements", "description": "Record payments and close the business day."},
    {"name": "Audit Entries", "description": "Query the append-only audit trail."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Clinic back-office ledger. Bills completed treatments, numbers invoices, "
        "records front-desk payments and closes each business day."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_CODES: dict[type[LedgerError], int] = {
    ValidationError: 422,
    StateError: 409,
    ConcurrencyError: 409,
}


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = _STATUS_CODES.get(type(exc), 400)
    if status_code == 409:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(treatments.router, prefix="/v1/treatments", tags=["Treatments"])
app.include_router(billing.router, prefix="/v1/billing", tags=["Billing"])
app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(settlements.router, prefix="/v1/settlements", tags=["Settlements"])
app.include_router(
    audit_entries.router,
    prefix="/v1/audit_entries",
    tags=["Audit Entries"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
