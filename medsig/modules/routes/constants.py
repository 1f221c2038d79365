"""Route of administration and dose form tables."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Route:
    name: str
    code: str
    snomed_code: str
    description: str
    human_readable: str
    fhir_code: str
    verb: str
    requires_special_instructions: bool = False
    special_instructions_template: str | None = None
    verb_map: dict[str, str] = field(default_factory=dict)
    applicable_forms: tuple[str, ...] = ()


@dataclass(frozen=True)
class DispenserConversion:
    dispenser_unit: str
    dispenser_plural_unit: str
    conversion_ratio: float


@dataclass(frozen=True)
class DoseForm:
    name: str
    is_countable: bool
    default_unit: str
    plural_unit: str
    applicable_routes: tuple[str, ...]
    default_route: str
    verb: str
    dispenser_conversion: DispenserConversion | None = None

    @property
    def has_special_dispenser(self) -> bool:
        return self.dispenser_conversion is not None


_INJECTION_TEMPLATE = "Inject {dose} {route} into {site} {frequency}."

_ROUTES: tuple[Route, ...] = (
    Route(
        "Orally", "PO", "26643006", "Administration by mouth", "by mouth", "PO", "Take",
        verb_map={"ODT": "Dissolve"},
    ),
    Route(
        "Sublingually", "SL", "37839007", "Administration under the tongue",
        "under the tongue", "SL", "Place",
        verb_map={"Troche": "Dissolve"},
    ),
    Route(
        "Intramuscularly", "IM", "78421000", "Injection into muscle tissue",
        "intramuscularly", "IM", "Inject",
        requires_special_instructions=True,
        special_instructions_template=_INJECTION_TEMPLATE,
    ),
    Route(
        "Subcutaneous", "SC", "34206005", "Injection under the skin",
        "subcutaneously", "SC", "Inject",
        requires_special_instructions=True,
        special_instructions_template=_INJECTION_TEMPLATE,
    ),
    Route(
        "Intravenous", "IV", "47625008", "Injection into a vein",
        "intravenously", "IV", "Inject",
        requires_special_instructions=True,
        special_instructions_template=_INJECTION_TEMPLATE,
    ),
    Route(
        "Topically", "TOP", "6064005", "Application to the skin",
        "topically", "TOP", "Apply",
        requires_special_instructions=True,
        special_instructions_template="Apply {dose} {route} {frequency}.",
    ),
    Route(
        "Transdermal", "TD", "45890007", "Absorption through the skin from a patch",
        "transdermally", "TD", "Apply",
    ),
    Route(
        "Intranasal", "NAS", "46713006", "Administration into the nose",
        "intranasally", "NAS", "Instill",
        verb_map={"Nasal Spray": "Spray"},
    ),
    Route("Rectally", "PR", "37161004", "Administration into the rectum", "rectally", "PR", "Insert"),
    Route(
        "Vaginally", "PV", "16857009", "Administration into the vagina", "vaginally", "PV", "Insert",
        verb_map={"Cream": "Apply", "Gel": "Apply"},
    ),
    Route("Inhaled", "INH", "18679011", "Inhalation into the lungs", "by inhalation", "INH", "Inhale"),
    Route("On Scalp", "SCALP", "6064005", "Application to the scalp", "to the scalp", "TOP", "Apply"),
    Route("Ophthalmic", "OPH", "54485002", "Administration into the eye", "in the eye", "OPH", "Instill"),
    Route("Otic", "OT", "10547007", "Administration into the ear", "in the ear", "OT", "Instill"),
)

_TOPICLICK = DispenserConversion("click", "clicks", 4.0)

_DOSE_FORMS: tuple[DoseForm, ...] = (
    DoseForm("Tablet", True, "tablet", "tablets", ("Orally", "Sublingually"), "Orally", "Take"),
    DoseForm("Capsule", True, "capsule", "capsules", ("Orally",), "Orally", "Take"),
    DoseForm("Troche", True, "troche", "troches", ("Orally", "Sublingually"), "Sublingually", "Dissolve"),
    DoseForm("ODT", True, "tablet", "tablets", ("Orally",), "Orally", "Dissolve"),
    DoseForm("Solution", False, "mL", "mL", ("Orally", "Topically"), "Orally", "Take"),
    DoseForm("Suspension", False, "mL", "mL", ("Orally",), "Orally", "Take"),
    DoseForm("Syrup", False, "mL", "mL", ("Orally",), "Orally", "Take"),
    DoseForm(
        "Vial", False, "mL", "mL",
        ("Intramuscularly", "Subcutaneous", "Intravenous"), "Intramuscularly", "Inject",
    ),
    DoseForm(
        "Cream", False, "g", "g",
        ("Topically", "Rectally", "Vaginally", "On Scalp"), "Topically", "Apply",
        dispenser_conversion=_TOPICLICK,
    ),
    DoseForm(
        "Gel", False, "g", "g",
        ("Topically", "Vaginally", "Transdermal"), "Topically", "Apply",
        dispenser_conversion=_TOPICLICK,
    ),
    DoseForm("Ointment", False, "g", "g", ("Topically", "Rectally"), "Topically", "Apply"),
    DoseForm("Foam", False, "g", "g", ("Topically", "On Scalp"), "Topically", "Apply"),
    DoseForm("Patch", True, "patch", "patches", ("Transdermal",), "Transdermal", "Apply"),
    DoseForm("Suppository", True, "suppository", "suppositories", ("Rectally", "Vaginally"), "Rectally", "Insert"),
    DoseForm("Inhaler", True, "puff", "puffs", ("Inhaled",), "Inhaled", "Inhale"),
    DoseForm("Nasal Spray", True, "spray", "sprays", ("Intranasal",), "Intranasal", "Spray"),
    DoseForm("Drops", True, "drop", "drops", ("Ophthalmic", "Otic", "Orally"), "Ophthalmic", "Instill"),
)


def _attach_forms(routes: tuple[Route, ...], dose_forms: tuple[DoseForm, ...]) -> dict[str, Route]:
    """Derive each route's applicable forms from the dose form table."""
    table: dict[str, Route] = {}
    for route in routes:
        forms = tuple(form.name for form in dose_forms if route.name in form.applicable_routes)
        table[route.name] = Route(
            name=route.name,
            code=route.code,
            snomed_code=route.snomed_code,
            description=route.description,
            human_readable=route.human_readable,
            fhir_code=route.fhir_code,
            verb=route.verb,
            requires_special_instructions=route.requires_special_instructions,
            special_instructions_template=route.special_instructions_template,
            verb_map=dict(route.verb_map),
            applicable_forms=forms,
        )
    return table


ROUTES: dict[str, Route] = _attach_forms(_ROUTES, _DOSE_FORMS)
DOSE_FORMS: dict[str, DoseForm] = {form.name: form for form in _DOSE_FORMS}

ROUTE_ALIASES: dict[str, str] = {
    # Oral
    "oral": "Orally",
    "po": "Orally",
    "by mouth": "Orally",
    "mouth": "Orally",
    # Injection
    "im": "Intramuscularly",
    "intramuscular": "Intramuscularly",
    "intramuscularly": "Intramuscularly",
    "sc": "Subcutaneous",
    "sq": "Subcutaneous",
    "subcut": "Subcutaneous",
    "subcutaneous": "Subcutaneous",
    "subcutaneously": "Subcutaneous",
    "iv": "Intravenous",
    "intravenous": "Intravenous",
    "intravenously": "Intravenous",
    # Topical
    "topical": "Topically",
    "skin": "Topically",
    "cutaneous": "Topically",
    # Sublingual
    "sl": "Sublingually",
    "sublingual": "Sublingually",
    "under tongue": "Sublingually",
    "under the tongue": "Sublingually",
    # Nasal
    "nasal": "Intranasal",
    "nose": "Intranasal",
    "nostril": "Intranasal",
    # Rectal / vaginal
    "rectal": "Rectally",
    "pr": "Rectally",
    "vaginal": "Vaginally",
    "pv": "Vaginally",
    # Transdermal
    "transdermal": "Transdermal",
    "patch": "Transdermal",
    "td": "Transdermal",
    # Inhalation
    "inhaled": "Inhaled",
    "inhalation": "Inhaled",
    "by inhalation": "Inhaled",
    "breathe": "Inhaled",
    # Scalp
    "scalp": "On Scalp",
    "head": "On Scalp",
    # Eye / ear
    "ophthalmic": "Ophthalmic",
    "eye": "Ophthalmic",
    "otic": "Otic",
    "ear": "Otic",
}
