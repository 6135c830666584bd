"""Tariff catalog: procedure codes, their billing rules, and the root canal resolver."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from clinic_ledger.core.config import settings
from clinic_ledger.core.errors import ValidationError
from clinic_ledger.services.tooth_classifier import ToothClass, classify_tooth


class ProcedureCategory(str, Enum):
    DIAGNOSTIC = "Diagnostic"
    PREVENTIVE = "Preventive"
    RESTORATIVE = "Restorative"
    ENDODONTIC = "Endodontic"
    PROSTHODONTIC = "Prosthodontic"
    SURGICAL = "Surgical"
    PERIODONTIC = "Periodontic"
    ORTHODONTIC = "Orthodontic"


class ProcedureCode(str, Enum):
    CONSULTATION = "consultation"
    IOPA = "iopa"
    OPG = "opg"
    CBCT = "cbct"
    SCALING_FULL = "scaling_full"
    SCALING_PARTIAL = "scaling_partial"
    FLUORIDE_APPLICATION = "fluoride_application"
    FILLING_COMPOSITE = "filling_composite"
    FILLING_AMALGAM = "filling_amalgam"
    FILLING_GIC = "filling_gic"
    RCT = "rct"
    RCT_ANTERIOR = "rct_anterior"
    RCT_PREMOLAR = "rct_premolar"
    RCT_MOLAR = "rct_molar"
    PULPOTOMY = "pulpotomy"
    CROWN_ZIRCONIA = "crown_zirconia"
    CROWN_METAL_CERAMIC = "crown_metal_ceramic"
    CROWN_METAL = "crown_metal"
    CROWN_EMAX = "crown_emax"
    VENEER_COMPOSITE = "veneer_composite"
    VENEER_CERAMIC = "veneer_ceramic"
    EXTRACTION_SIMPLE = "extraction_simple"
    EXTRACTION_SURGICAL = "extraction_surgical"
    EXTRACTION_IMPACTED = "extraction_impacted"
    IMPLANT = "implant"
    DEEP_CLEANING = "deep_cleaning"
    GUM_SURGERY = "gum_surgery"
    BRACES_CONSULTATION = "braces_consultation"
    BRACES_METAL = "braces_metal"
    BRACES_CERAMIC = "braces_ceramic"
    ALIGNERS = "aligners"


@dataclass(frozen=True)
class BillingRule:
    """Priced definition of a billable procedure. Costs are minor currency units."""

    procedure: ProcedureCode
    tariff_code: str
    base_cost: int
    per_tooth: bool
    tax_rate: int
    description: str
    category: ProcedureCategory


@dataclass(frozen=True)
class CostEstimate:
    subtotal: int
    tax: int
    total: int


# Generic root canal -> class specific priced variant. Exhaustive over ToothClass.
RCT_BY_TOOTH_CLASS: dict[ToothClass, ProcedureCode] = {
    ToothClass.ANTERIOR: ProcedureCode.RCT_ANTERIOR,
    ToothClass.PREMOLAR: ProcedureCode.RCT_PREMOLAR,
    ToothClass.MOLAR: ProcedureCode.RCT_MOLAR,
}


def resolve_procedure(procedure: ProcedureCode, tooth_class: ToothClass | None) -> ProcedureCode:
    """Map a procedure plus the class of its first tooth onto the priced variant.

    Only the generic root canal depends on the tooth; every other code resolves
    to itself.
    """
    if procedure is not ProcedureCode.RCT:
        return procedure
    if tooth_class is None:
        raise ValidationError(
            "root canal requires at least one affected tooth to be priced",
            identifier=procedure.value,
        )
    return RCT_BY_TOOTH_CLASS[tooth_class]


def _rule(
    procedure: ProcedureCode,
    tariff_code: str,
    base_cost: int,
    per_tooth: bool,
    tax_rate: int,
    description: str,
    category: ProcedureCategory,
) -> BillingRule:
    return BillingRule(procedure, tariff_code, base_cost, per_tooth, tax_rate, description, category)


C = ProcedureCategory
P = ProcedureCode

DEFAULT_RULES: tuple[BillingRule, ...] = (
    _rule(P.CONSULTATION, "CONS001", 500, False, 0, "General Dental Consultation", C.DIAGNOSTIC),
    _rule(P.IOPA, "DIAG001", 200, True, 18, "Intra Oral Periapical X-Ray", C.DIAGNOSTIC),
    _rule(P.OPG, "DIAG002", 500, False, 18, "Orthopantomogram (OPG)", C.DIAGNOSTIC),
    _rule(P.CBCT, "DIAG003", 3500, False, 18, "Cone Beam CT Scan", C.DIAGNOSTIC),
    _rule(P.SCALING_FULL, "PREV001", 1200, False, 18, "Full Mouth Scaling & Polishing", C.PREVENTIVE),
    _rule(P.SCALING_PARTIAL, "PREV002", 800, False, 18, "Partial Mouth Scaling", C.PREVENTIVE),
    _rule(P.FLUORIDE_APPLICATION, "PREV003", 600, False, 12, "Fluoride Application", C.PREVENTIVE),
    _rule(P.FILLING_COMPOSITE, "REST001", 1500, True, 12, "Composite Filling", C.RESTORATIVE),
    _rule(P.FILLING_AMALGAM, "REST002", 800, True, 12, "Amalgam Filling", C.RESTORATIVE),
    _rule(P.FILLING_GIC, "REST003", 1000, True, 12, "Glass Ionomer Cement Filling", C.RESTORATIVE),
    _rule(P.RCT_ANTERIOR, "ENDO001", 5500, True, 12, "Root Canal Treatment - Anterior", C.ENDODONTIC),
    _rule(P.RCT_PREMOLAR, "ENDO002", 6500, True, 12, "Root Canal Treatment - Premolar", C.ENDODONTIC),
    _rule(P.RCT_MOLAR, "ENDO003", 8500, True, 12, "Root Canal Treatment - Molar", C.ENDODONTIC),
    _rule(P.PULPOTOMY, "ENDO004", 2500, True, 12, "Pulpotomy", C.ENDODONTIC),
    _rule(P.CROWN_ZIRCONIA, "PROS001", 8000, True, 12, "Zirconia Crown", C.PROSTHODONTIC),
    _rule(
        P.CROWN_METAL_CERAMIC,
        "PROS002",
        5500,
        True,
        12,
        "Porcelain Fused to Metal Crown (PFM)",
        C.PROSTHODONTIC,
    ),
    _rule(P.CROWN_METAL, "PROS003", 3500, True, 12, "Metal Crown", C.PROSTHODONTIC),
    _rule(P.CROWN_EMAX, "PROS004", 12000, True, 12, "E-Max Crown", C.PROSTHODONTIC),
    _rule(P.VENEER_COMPOSITE, "PROS005", 4000, True, 12, "Composite Veneer", C.PROSTHODONTIC),
    _rule(P.VENEER_CERAMIC, "PROS006", 10000, True, 12, "Ceramic Veneer", C.PROSTHODONTIC),
    _rule(P.EXTRACTION_SIMPLE, "SURG001", 1500, True, 12, "Simple Tooth Extraction", C.SURGICAL),
    _rule(P.EXTRACTION_SURGICAL, "SURG002", 3500, True, 12, "Surgical Extraction", C.SURGICAL),
    _rule(P.EXTRACTION_IMPACTED, "SURG003", 6500, True, 12, "Impacted Tooth Removal", C.SURGICAL),
    _rule(P.IMPLANT, "SURG004", 25000, True, 12, "Dental Implant", C.SURGICAL),
    _rule(
        P.DEEP_CLEANING,
        "PERIO001",
        2500,
        False,
        12,
        "Deep Cleaning (Scaling & Root Planing)",
        C.PERIODONTIC,
    ),
    _rule(P.GUM_SURGERY, "PERIO002", 8000, False, 12, "Periodontal Surgery", C.PERIODONTIC),
    _rule(
        P.BRACES_CONSULTATION, "ORTHO001", 1000, False, 0, "Orthodontic Consultation", C.ORTHODONTIC
    ),
    _rule(P.BRACES_METAL, "ORTHO002", 45000, False, 18, "Metal Braces (Full Treatment)", C.ORTHODONTIC),
    _rule(
        P.BRACES_CERAMIC, "ORTHO003", 65000, False, 18, "Ceramic Braces (Full Treatment)", C.ORTHODONTIC
    ),
    _rule(P.ALIGNERS, "ORTHO004", 120000, False, 18, "Clear Aligners (Full Treatment)", C.ORTHODONTIC),
)


def line_tax(line_subtotal: int, tax_rate: int) -> int:
    """Tax for one line, rounded half-up to a whole minor unit."""
    amount = Decimal(line_subtotal) * Decimal(tax_rate) / Decimal(100)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class TariffCatalog:
    """Static lookup from procedure code to its BillingRule."""

    def __init__(
        self,
        rules: Iterable[BillingRule] = DEFAULT_RULES,
        tax_buckets: Iterable[int] | None = None,
    ):
        buckets = frozenset(settings.TAX_RATE_BUCKETS if tax_buckets is None else tax_buckets)
        self._rules: dict[ProcedureCode, BillingRule] = {}
        for rule in rules:
            if rule.tax_rate not in buckets:
                raise ValidationError(
                    f"tax rate {rule.tax_rate}% of {rule.procedure.value} "
                    f"is not one of {sorted(buckets)}",
                    identifier=rule.procedure.value,
                )
            if rule.procedure is ProcedureCode.RCT:
                raise ValidationError(
                    "generic root canal cannot carry its own price",
                    identifier=rule.procedure.value,
                )
            self._rules[rule.procedure] = rule

    def __iter__(self) -> Iterator[BillingRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    @staticmethod
    def parse_code(procedure_id: str | ProcedureCode) -> ProcedureCode:
        try:
            return ProcedureCode(procedure_id)
        except ValueError:
            raise ValidationError(
                f"unknown procedure: {procedure_id}", identifier=str(procedure_id)
            ) from None

    def get(self, procedure_id: str | ProcedureCode) -> BillingRule:
        """Return the rule for a concrete procedure code."""
        code = self.parse_code(procedure_id)
        rule = self._rules.get(code)
        if rule is None:
            raise ValidationError(f"unknown procedure: {code.value}", identifier=code.value)
        return rule

    def resolve(self, procedure_id: str | ProcedureCode, teeth: list[int]) -> BillingRule:
        """Resolve the effective rule, specializing a root canal by its first tooth."""
        code = self.parse_code(procedure_id)
        tooth_class = classify_tooth(teeth[0]) if teeth else None
        return self.get(resolve_procedure(code, tooth_class))

    def estimate(self, procedure_id: str | ProcedureCode, teeth: list[int]) -> CostEstimate:
        """Planning estimate for a procedure on the given teeth."""
        rule = self.resolve(procedure_id, teeth)
        quantity = len(teeth) if rule.per_tooth else 1
        if quantity == 0:
            raise ValidationError(
                f"{rule.procedure.value} is billed per tooth but no teeth were given",
                identifier=rule.procedure.value,
            )
        subtotal = rule.base_cost * quantity
        tax = line_tax(subtotal, rule.tax_rate)
        return CostEstimate(subtotal=subtotal, tax=tax, total=subtotal + tax)


default_catalog = TariffCatalog()
