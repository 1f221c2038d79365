"""Signature generation: human readable text plus FHIR Dosage."""

from medsig.modules.signature.schemas import DoseValidation, SignatureResult
from medsig.modules.signature.service import (
    build_signature,
    generate_signature,
    get_default_dispatcher,
    get_denominator_unit,
    get_dispensing_unit,
    get_strength_mode,
    is_multi_ingredient,
    validate_dose,
)

__all__ = [
    "DoseValidation",
    "SignatureResult",
    "build_signature",
    "generate_signature",
    "get_default_dispatcher",
    "get_denominator_unit",
    "get_dispensing_unit",
    "get_strength_mode",
    "is_multi_ingredient",
    "validate_dose",
]
