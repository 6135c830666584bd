"""Anatomical classification of teeth in FDI two-digit notation."""

from enum import Enum

from clinic_ledger.core.errors import ValidationError


class ToothClass(str, Enum):
    ANTERIOR = "anterior"
    PREMOLAR = "premolar"
    MOLAR = "molar"


PERMANENT_QUADRANTS = range(1, 5)
DECIDUOUS_QUADRANTS = range(5, 9)

# Eight permanent teeth per quadrant, five primary teeth.
PERMANENT_POSITIONS = range(1, 9)
DECIDUOUS_POSITIONS = range(1, 6)

# Position within a quadrant -> class; identical for every quadrant.
_POSITION_CLASS: dict[int, ToothClass] = {
    1: ToothClass.ANTERIOR,
    2: ToothClass.ANTERIOR,
    3: ToothClass.ANTERIOR,
    4: ToothClass.PREMOLAR,
    5: ToothClass.PREMOLAR,
    6: ToothClass.MOLAR,
    7: ToothClass.MOLAR,
    8: ToothClass.MOLAR,
}


def _split(tooth: object) -> tuple[int, int]:
    if isinstance(tooth, bool) or not isinstance(tooth, int):
        raise ValidationError(
            f"tooth identifier must be an integer, got {tooth!r}",
            identifier=repr(tooth),
        )
    quadrant, position = divmod(tooth, 10)
    if quadrant in PERMANENT_QUADRANTS and position in PERMANENT_POSITIONS:
        return quadrant, position
    if quadrant in DECIDUOUS_QUADRANTS and position in DECIDUOUS_POSITIONS:
        return quadrant, position
    raise ValidationError(
        f"tooth identifier {tooth} is not a valid FDI tooth",
        identifier=str(tooth),
    )


def classify_tooth(tooth: int) -> ToothClass:
    """Return the anatomical class of an FDI tooth (e.g. 11 -> anterior, 46 -> molar)."""
    _, position = _split(tooth)
    return _POSITION_CLASS[position]


def quadrant_of(tooth: int) -> int:
    quadrant, _ = _split(tooth)
    return quadrant


def is_permanent(tooth: int) -> bool:
    quadrant, _ = _split(tooth)
    return quadrant in PERMANENT_QUADRANTS


def validate_teeth(teeth: list[int]) -> list[int]:
    """Validate every tooth id, returning the list unchanged."""
    for tooth in teeth:
        _split(tooth)
    if len(set(teeth)) != len(teeth):
        raise ValidationError(
            f"duplicate tooth identifiers in {teeth}",
            identifier=",".join(str(t) for t in teeth),
        )
    return teeth
